"""
Campaign comment model definition
"""
from models import db
from datetime import datetime

DELETED_COMMENT_TEXT = '[This comment has been deleted]'


class Comment(db.Model):
    """Comment on a campaign; replies point at a top-level comment"""
    __tablename__ = 'comments'
    __table_args__ = (
        db.Index('ix_comments_campaign_created', 'campaign_id', 'created_at'),
    )

    id = db.Column(db.Integer, primary_key=True)
    campaign_id = db.Column(db.Integer, db.ForeignKey('campaigns.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    parent_id = db.Column(db.Integer, db.ForeignKey('comments.id'), nullable=True, index=True)
    content = db.Column(db.String(1000), nullable=False)
    likes_count = db.Column(db.Integer, default=0, nullable=False)
    pinned = db.Column(db.Boolean, default=False, nullable=False)
    deleted = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    author = db.relationship('User', lazy=True)

    def to_dict(self, replies=None):
        data = {
            'id': self.id,
            'campaign_id': self.campaign_id,
            'parent_id': self.parent_id,
            'content': self.content,
            'author': {
                'id': self.author.id,
                'name': self.author.name,
                'username': self.author.username,
            } if self.author else None,
            'likes': self.likes_count or 0,
            'pinned': bool(self.pinned),
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
        if replies is not None:
            data['replies'] = [reply.to_dict() for reply in replies]
        return data

    def __repr__(self):
        return f'<Comment {self.id} on campaign {self.campaign_id}>'
