"""Load or remove the development fixtures in ``dev-data/``.

    python scripts/import_dev_data.py --import
    python scripts/import_dev_data.py --delete

Fixtures reference each other by natural key: tours list guide emails and
reviews name their tour and author email.
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from app import create_app  # noqa: E402
from models import db  # noqa: E402
from models.review import Review  # noqa: E402
from models.tour import Tour, TourStartDate, slugify, tour_guides  # noqa: E402
from models.user import User  # noqa: E402
from services.ratings import recalculate_tour_ratings  # noqa: E402

DATA_DIR = Path(__file__).resolve().parents[1] / "dev-data"


class FixtureError(Exception):
    """Raised when a fixture record is invalid or references a missing record."""


def _load(data_dir: Path, name: str) -> list[dict]:
    with open(data_dir / f"{name}.json", encoding="utf-8") as handle:
        return json.load(handle)


def import_data(data_dir: Path = DATA_DIR) -> dict[str, int]:
    """Insert users, tours and reviews, then recompute tour ratings."""

    users_by_email: dict[str, User] = {}
    for record in _load(data_dir, "users"):
        user = User(
            name=record["name"],
            email=record["email"],
            role=record.get("role", "user"),
            photo=record.get("photo", "default.jpg"),
        )
        user.set_password(record["password"])
        db.session.add(user)
        users_by_email[user.email] = user
    db.session.flush()

    tours_by_name: dict[str, Tour] = {}
    for record in _load(data_dir, "tours"):
        guide_emails = record.get("guides", [])
        missing = [email for email in guide_emails if email not in users_by_email]
        if missing:
            raise FixtureError(f"Unknown guide(s) for {record['name']}: {', '.join(missing)}")

        tour = Tour()
        with db.session.no_autoflush:
            tour.assign({**record, "guides": [users_by_email[e].id for e in guide_emails]})
            errors = tour.validate()
        if errors:
            raise FixtureError(f"Invalid tour {record['name']}: {'. '.join(errors)}")
        tour.slug = slugify(tour.name)
        db.session.add(tour)
        tours_by_name[tour.name] = tour
    db.session.flush()

    review_count = 0
    for record in _load(data_dir, "reviews"):
        tour = tours_by_name.get(record["tour"])
        user = users_by_email.get(record["user"])
        if tour is None or user is None:
            raise FixtureError(f"Review references unknown tour or user: {record}")
        db.session.add(
            Review(review=record["review"], rating=record["rating"], tour_id=tour.id, user_id=user.id)
        )
        review_count += 1
    db.session.commit()

    for tour in tours_by_name.values():
        recalculate_tour_ratings(tour.id)

    return {"users": len(users_by_email), "tours": len(tours_by_name), "reviews": review_count}


def delete_data() -> None:
    """Remove every review, tour and user."""

    Review.query.delete()
    TourStartDate.query.delete()
    db.session.execute(tour_guides.delete())
    Tour.query.delete()
    User.query.delete()
    db.session.commit()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    action = parser.add_mutually_exclusive_group(required=True)
    action.add_argument("--import", dest="do_import", action="store_true", help="load the fixtures")
    action.add_argument("--delete", dest="do_delete", action="store_true", help="remove all data")
    args = parser.parse_args(argv)

    app = create_app()
    with app.app_context():
        if args.do_import:
            try:
                counts = import_data()
            except FixtureError as exc:
                db.session.rollback()
                print(f"Import failed: {exc}", file=sys.stderr)
                return 1
            print(
                "Data successfully loaded: {users} users, {tours} tours, {reviews} reviews".format(
                    **counts
                )
            )
        else:
            delete_data()
            print("Data successfully deleted!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
