"""
Cross-post data types: stored credentials, the source post and the outbound record.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

POST_COLLECTION = 'app.bsky.feed.post'
EXTERNAL_EMBED_TYPE = 'app.bsky.embed.external'


@dataclass(frozen=True)
class Credentials:
    """Snapshot of the Bluesky connection stored in the settings table."""

    domain: Optional[str] = None
    identifier: Optional[str] = None
    password: Optional[str] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    did: Optional[str] = None

    @property
    def is_connected(self) -> bool:
        # A partial triple (e.g. token without DID) is not a connection
        return bool(self.access_token and self.refresh_token and self.did)


@dataclass(frozen=True)
class Post:
    """The published content item being shared."""

    id: int
    title: str
    content: str = ''
    excerpt: str = ''
    published_at: Optional[datetime] = None
    shortlink: str = ''


@dataclass(frozen=True)
class ExternalEmbed:
    uri: str
    title: str
    description: str

    def to_dict(self):
        return {
            '$type': EXTERNAL_EMBED_TYPE,
            'external': {
                'uri': self.uri,
                'title': self.title,
                'description': self.description,
            },
        }


@dataclass(frozen=True)
class OutboundPost:
    """An ``app.bsky.feed.post`` record built for a single dispatch."""

    text: str
    created_at: str
    embed: ExternalEmbed

    def to_record(self):
        return {
            '$type': POST_COLLECTION,
            'text': self.text,
            'createdAt': self.created_at,
            'embed': self.embed.to_dict(),
        }

    def to_request_body(self, did):
        """Body of a ``com.atproto.repo.createRecord`` call."""
        return {
            'collection': POST_COLLECTION,
            'repo': did,
            'did': did,
            'record': self.to_record(),
        }
