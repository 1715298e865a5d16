"""
Content report model definition
"""
from models import db
from datetime import datetime

REPORT_TARGET_TYPES = ('campaign', 'comment', 'user')
REPORT_REASONS = (
    'spam', 'fraud', 'misleading', 'inappropriate',
    'harassment', 'intellectual_property', 'other',
)


class Report(db.Model):
    """User report against a campaign, comment or user; one per reporter per target"""
    __tablename__ = 'reports'
    __table_args__ = (
        db.UniqueConstraint('target_type', 'target_id', 'reporter_id', name='uq_reports_target_reporter'),
        db.Index('ix_reports_status_created', 'status', 'created_at'),
    )

    id = db.Column(db.Integer, primary_key=True)
    target_type = db.Column(db.String(20), nullable=False)
    target_id = db.Column(db.Integer, nullable=False)
    reporter_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    reason = db.Column(db.String(40), nullable=False)
    description = db.Column(db.String(1000), default='')
    status = db.Column(db.String(20), default='pending')  # pending, reviewing, resolved, dismissed
    resolution = db.Column(db.Text, default='')
    resolved_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    resolved_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'target_type': self.target_type,
            'target_id': self.target_id,
            'reason': self.reason,
            'description': self.description,
            'status': self.status,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<Report {self.target_type}:{self.target_id}>'
