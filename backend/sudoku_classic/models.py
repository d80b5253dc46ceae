from sudoku_classic import db
from flask_login import UserMixin


class User(UserMixin, db.Model):
    """A durable identity handed to us by the federated sign-in provider."""
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    uid = db.Column(db.String(128), unique=True, nullable=False, index=True)
    email = db.Column(db.String(256), nullable=True)

    def to_dict(self):
        return {
            'uid': self.uid,
            'email': self.email,
        }


class KeyValue(db.Model):
    """Scoped string storage backing the local ledger and the guest flag.

    One scope per client device; each scope holds a handful of fixed keys.
    """
    __tablename__ = 'key_value'
    __table_args__ = (
        db.UniqueConstraint('scope', 'key', name='uq_key_value_scope_key'),
    )
    id = db.Column(db.Integer, primary_key=True)
    scope = db.Column(db.String(128), nullable=False, index=True)
    key = db.Column(db.String(128), nullable=False)
    value = db.Column(db.Text, nullable=False)


class RemoteGameRecord(db.Model):
    """A history document in the per-identity remote collection."""
    __bind_key__ = 'remote'
    __tablename__ = 'remote_game_record'
    id = db.Column(db.Integer, primary_key=True)
    user_uid = db.Column(db.String(128), nullable=False, index=True)
    difficulty = db.Column(db.String(16), nullable=False)
    score = db.Column(db.Integer, nullable=False)
    time_seconds = db.Column(db.Integer, nullable=False)
    mistakes = db.Column(db.Integer, nullable=False)
    completed_at = db.Column(db.BigInteger, nullable=False, index=True)

    def to_document(self):
        return {
            'difficulty': self.difficulty,
            'score': self.score,
            'time_seconds': self.time_seconds,
            'mistakes': self.mistakes,
            'completed_at': self.completed_at,
        }
