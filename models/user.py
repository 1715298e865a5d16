"""
User model definition
"""
from models import db
from datetime import datetime
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash


class User(UserMixin, db.Model):
    """Creator / supporter account"""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    username = db.Column(db.String(50), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    is_admin = db.Column(db.Boolean, default=False, nullable=False)
    is_active = db.Column(db.Boolean, default=True)

    # Denormalized creator aggregates, credited by payment settlement
    total_raised = db.Column(db.Numeric(12, 2), default=0, nullable=False)
    total_supporters = db.Column(db.Integer, default=0, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    campaigns = db.relationship('Campaign', backref='creator', lazy=True)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def to_dict(self, private=False):
        data = {
            'id': self.id,
            'name': self.name,
            'username': self.username,
        }
        if private:
            data.update({
                'email': self.email,
                'is_admin': self.is_admin,
                'total_raised': float(self.total_raised or 0),
                'total_supporters': self.total_supporters or 0,
            })
        return data

    def __repr__(self):
        return f'<User {self.username}>'
