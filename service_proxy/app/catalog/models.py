"""
Catalog records for applications, versions, users and third-party tokens.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, Mapping, Optional


@dataclass(frozen=True)
class Application:
    """A deployable unit (a branch or pull request) and its version pointers."""

    id: str
    owner: str
    current: Optional[str] = None
    previous: Optional[str] = None
    latest: Optional[str] = None
    autoupdate: bool = False

    def promote(self, version_id: str) -> "Application":
        """Return the record as it looks after making ``version_id`` current."""
        return replace(self, current=version_id, previous=self.current)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "owner": self.owner,
            "current": self.current,
            "previous": self.previous,
            "latest": self.latest,
            "autoupdate": self.autoupdate,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Application":
        return cls(
            id=record["id"],
            owner=record["owner"],
            current=record.get("current"),
            previous=record.get("previous"),
            latest=record.get("latest"),
            autoupdate=bool(record.get("autoupdate", False)),
        )


@dataclass(frozen=True)
class Version:
    """One deployed build of an application."""

    id: str
    app: str
    owner: str
    seq: Optional[int] = None
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "app": self.app,
            "owner": self.owner,
        }
        if self.created_at is not None:
            payload["created_at"] = self.created_at.isoformat()
        return payload

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Version":
        return cls(
            id=record["id"],
            app=record["app"],
            owner=record["owner"],
            seq=record.get("seq"),
            created_at=record.get("created_at"),
        )


@dataclass(frozen=True)
class User:
    """A user known from an identity-provider login."""

    id: str
    avatar: Optional[str] = None
    home: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "avatar": self.avatar, "home": self.home}

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "User":
        return cls(id=record["id"], avatar=record.get("avatar"), home=record.get("home"))


@dataclass(frozen=True)
class ThirdPartyToken:
    """OAuth authorization granted to this service by a third-party workspace."""

    provider: str
    team_id: str
    access_token: str
    scope: Optional[str] = None
    bot_id: Optional[str] = None
    bot_access_token: Optional[str] = None

    @classmethod
    def from_slack(cls, payload: Mapping[str, Any]) -> "ThirdPartyToken":
        """Build a token from a Slack ``oauth.access`` response."""
        team_id = payload.get("team_id")
        access_token = payload.get("access_token")
        if not team_id or not access_token:
            raise ValueError("Slack authorization is missing team_id or access_token")

        bot = payload.get("bot") or {}
        return cls(
            provider="slack",
            team_id=team_id,
            access_token=access_token,
            scope=payload.get("scope"),
            bot_id=bot.get("bot_user_id"),
            bot_access_token=bot.get("bot_access_token"),
        )
