"""Review model definition."""

from datetime import datetime

from sqlalchemy.orm import validates

from . import db
from .base import ResourceMixin, isoformat


class Review(ResourceMixin, db.Model):
    """A user's rating and feedback for a tour."""

    __tablename__ = "reviews"
    __table_args__ = (
        db.UniqueConstraint("tour_id", "user_id", name="uq_reviews_tour_user"),
    )

    PUBLIC_FIELDS = ("id", "review", "rating", "created_at", "tour_id", "user_id")
    WRITABLE_FIELDS = ("review", "rating", "tour_id", "user_id")

    id = db.Column(db.Integer, primary_key=True)
    review = db.Column(db.Text, nullable=False)
    rating = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    tour_id = db.Column(
        db.Integer,
        db.ForeignKey("tours.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    tour = db.relationship("Tour", back_populates="reviews")
    user = db.relationship("User", back_populates="reviews", lazy="joined")

    @validates("review")
    def _strip_review(self, key, value):
        return value.strip() if isinstance(value, str) else value

    def serialize(self, expand=()) -> dict:
        return {
            "id": self.id,
            "review": self.review,
            "rating": self.rating,
            "created_at": isoformat(self.created_at),
            "tour_id": self.tour_id,
            "user": self.user.summary() if self.user is not None else None,
        }

    def validate(self) -> list[str]:
        from .tour import Tour
        from .user import User

        errors = []
        if not self.review or not isinstance(self.review, str):
            errors.append("Review can not be empty")
        if self.rating is None:
            errors.append("A review must have a rating")
        elif not isinstance(self.rating, int) or isinstance(self.rating, bool):
            errors.append("Rating must be a whole number")
        elif not 1 <= self.rating <= 5:
            errors.append("Rating must be between 1 and 5")

        if self.tour_id is None:
            errors.append("Review must belong to a tour")
        elif Tour.visible_query().filter(Tour.id == self.tour_id).first() is None:
            errors.append("Review must belong to an existing tour")
        if self.user_id is None:
            errors.append("Review must belong to a user")
        elif User.visible_query().filter(User.id == self.user_id).first() is None:
            errors.append("Review must belong to an existing user")
        return errors
