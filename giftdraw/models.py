from datetime import datetime
from flask_login import UserMixin
from .extensions import db, login_manager


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)

    # argon2 hash, see security.py
    password_hash = db.Column(db.String(255), nullable=False)

    # Provisioned accounts start with a temporary password; force change on first login.
    must_change_password = db.Column(db.Boolean, default=False, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    draws = db.relationship("Draw", back_populates="author")


class Draw(db.Model):
    __tablename__ = "draws"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    author_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    author = db.relationship("User", back_populates="draws")

    # The ORM cascades deletes itself; SQLite does not enforce ON DELETE without a pragma.
    participants = db.relationship(
        "Participant",
        back_populates="draw",
        cascade="all, delete-orphan",
        order_by=lambda: [Participant.created_at, Participant.id],
    )
    matches = db.relationship("Match", back_populates="draw", cascade="all, delete-orphan")


class Participant(db.Model):
    __tablename__ = "participants"

    id = db.Column(db.Integer, primary_key=True)
    draw_id = db.Column(db.Integer, db.ForeignKey("draws.id", ondelete="CASCADE"), nullable=False, index=True)

    name = db.Column(db.String(100), nullable=False)
    surname = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    gift_preferences = db.Column(db.Text, default="", nullable=False)

    # Weak link to a provisioned account, back-filled at match time.
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    draw = db.relationship("Draw", back_populates="participants")
    user = db.relationship("User")


class Match(db.Model):
    """
    Directed assignment: giver_id buys a gift for recipient_id.
    One row per participant; a draw is matched at most once.
    """
    __tablename__ = "matches"

    id = db.Column(db.Integer, primary_key=True)
    draw_id = db.Column(db.Integer, db.ForeignKey("draws.id", ondelete="CASCADE"), nullable=False, index=True)

    giver_id = db.Column(db.Integer, db.ForeignKey("participants.id", ondelete="CASCADE"), nullable=False)
    recipient_id = db.Column(db.Integer, db.ForeignKey("participants.id", ondelete="CASCADE"), nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    draw = db.relationship("Draw", back_populates="matches")
    giver = db.relationship("Participant", foreign_keys=[giver_id])
    recipient = db.relationship("Participant", foreign_keys=[recipient_id])

    __table_args__ = (
        db.UniqueConstraint("draw_id", "giver_id"),
        db.UniqueConstraint("draw_id", "recipient_id"),
        db.CheckConstraint("giver_id <> recipient_id", name="giver_not_recipient"),
    )


@login_manager.user_loader
def load_user(user_id: str):
    return db.session.get(User, int(user_id))
