"""Keep each tour's rating aggregate in step with its reviews."""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func
from sqlalchemy.orm.exc import StaleDataError

from models import db
from models.review import Review
from models.tour import DEFAULT_RATINGS_AVERAGE, Tour

MAX_ATTEMPTS = 3


def recalculate_tour_ratings(tour_id: int) -> None:
    """Recompute ``ratings_quantity`` and ``ratings_average`` for a tour.

    The tour row is version-checked on write. When another request updated
    the tour between our read and write, the aggregate is re-read and written
    again.
    """

    for attempt in range(1, MAX_ATTEMPTS + 1):
        tour = db.session.get(Tour, tour_id)
        if tour is None:
            return

        count, average = (
            db.session.query(func.count(Review.id), func.avg(Review.rating))
            .filter(Review.tour_id == tour_id)
            .one()
        )
        if count:
            tour.ratings_quantity = int(count)
            tour.ratings_average = float(average)
        else:
            tour.ratings_quantity = 0
            tour.ratings_average = DEFAULT_RATINGS_AVERAGE

        try:
            db.session.commit()
            return
        except StaleDataError:
            db.session.rollback()
            current_app.logger.warning(
                "Tour %s changed during rating update (attempt %s/%s)",
                tour_id,
                attempt,
                MAX_ATTEMPTS,
            )
    raise StaleDataError(f"Could not update ratings for tour {tour_id}")
