from cyberguard import db
import json
import time
import uuid


def generate_document_id():
    """Generate an opaque document id."""
    return uuid.uuid4().hex[:20]


class Document(db.Model):
    """A JSON document in a named collection.

    `version` increases by one on every committed write and is the
    compare-and-set token used by the room services.
    """
    __tablename__ = 'document'
    collection = db.Column(db.String(64), primary_key=True)
    id = db.Column(db.String(32), primary_key=True, default=generate_document_id)
    data = db.Column(db.Text, nullable=False, default='{}')  # JSON-encoded object
    version = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.Float, nullable=False, default=time.time)
    updated_at = db.Column(db.Float, nullable=False, default=time.time)

    def to_dict(self):
        return json.loads(self.data) if self.data else {}

    def __repr__(self):
        return f'<Document {self.collection}/{self.id} v{self.version}>'
