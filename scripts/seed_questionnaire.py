import sys
from pathlib import Path

import yaml

from app.db.database import Base, engine, transactional_session
from app.services.seeds import seed_reference_questionnaire

"""
CLI usage:
python -m scripts.seed_questionnaire [path_to_yaml]
Without a path the bundled reference questionnaire (version 1) is seeded.
"""

def main():
    if len(sys.argv) > 2:
        print("Usage: python -m scripts.seed_questionnaire [questionnaire.yaml]")
        sys.exit(1)
    raw = None
    if len(sys.argv) == 2:
        path = Path(sys.argv[1])
        if not path.exists():
            print(f"File not found: {path}")
            sys.exit(1)
        with path.open("r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh)
        if not isinstance(raw, dict) or "version_number" not in raw:
            print("YAML must define version_number and areas")
            sys.exit(2)
    Base.metadata.create_all(bind=engine)
    with transactional_session() as db:
        version = seed_reference_questionnaire(db, raw)
        if version is None:
            print("Questionnaire version already exists, nothing seeded")
            return
        questions = sum(len(element.questions) for area in version.areas for element in area.elements)
        print(
            f"Seeded version {version.version_number} ({version.status.value}): "
            f"{len(version.areas)} areas, {questions} questions"
        )

if __name__ == '__main__':
    main()
