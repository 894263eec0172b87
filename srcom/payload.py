# srcom/payload.py
# Field extraction for speedrun.com run payloads. Embedded resources come
# wrapped as {"data": {...}} (or {"data": []} when absent); non-embedded ones
# are bare id strings.

from __future__ import annotations

import math
from datetime import timezone
from typing import Any, Dict, List, Optional, Tuple

from dateutil.parser import isoparse

COVER_ASSET_KEYS = ("cover-tiny", "cover-small", "cover-medium", "cover-large", "icon")


def extract_id_and_name(field: Any) -> Tuple[Optional[str], Optional[str]]:
    if isinstance(field, str):
        return field, None
    if not isinstance(field, dict):
        return None, None
    data = field.get("data")
    if not isinstance(data, dict):
        return None, None
    rid = data.get("id") if isinstance(data.get("id"), str) else None
    name = None
    names = data.get("names")
    if isinstance(names, dict) and isinstance(names.get("international"), str):
        name = names["international"]
    if isinstance(data.get("name"), str):
        name = data["name"]
    return rid, name


def parse_epoch(value: Any) -> Optional[int]:
    """ISO-8601 timestamp -> epoch seconds (UTC). None when unparseable."""
    if not isinstance(value, str) or not value:
        return None
    try:
        dt = isoparse(value)
    except (ValueError, OverflowError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp())


def verify_epoch(run: dict) -> Tuple[Optional[int], Optional[str]]:
    status = run.get("status")
    verify_date = status.get("verify-date") if isinstance(status, dict) else None
    epoch = parse_epoch(verify_date)
    if epoch is None:
        return None, None
    return epoch, verify_date


def primary_time(run: dict) -> Optional[float]:
    times = run.get("times")
    if not isinstance(times, dict):
        return None
    t = times.get("primary_t")
    if isinstance(t, bool) or not isinstance(t, (int, float)):
        return None
    t = float(t)
    if math.isnan(t) or math.isinf(t) or t < 0:
        return None
    return t


def _players_list(run: dict) -> List[dict]:
    players = run.get("players")
    if isinstance(players, dict):
        players = players.get("data")
    if not isinstance(players, list):
        return []
    return [p for p in players if isinstance(p, dict)]


def _player_name(p: dict) -> str:
    name = p.get("name")
    if not isinstance(name, str):
        names = p.get("names")
        name = names.get("international") if isinstance(names, dict) else None
    if not isinstance(name, str):
        name = p.get("id")
    return name if isinstance(name, str) and name else "unknown"


def players_compact(run: dict) -> str:
    return ", ".join(_player_name(p) for p in _players_list(run))


def players_data(run: dict) -> Optional[List[Dict[str, str]]]:
    """Players with profile link and avatar, for the runner(s) cell."""
    out = []
    for p in _players_list(run):
        img_raw = ""
        assets = p.get("assets")
        if isinstance(assets, dict):
            for key in ("image", "icon"):
                asset = assets.get(key)
                uri = asset.get("uri") if isinstance(asset, dict) else None
                if isinstance(uri, str) and uri:
                    img_raw = uri
                    break
        weblink = p.get("weblink")
        out.append({
            "name": _player_name(p),
            "weblink": weblink if isinstance(weblink, str) else "",
            "image": normalize_user_image_uri(img_raw) if img_raw else "",
        })
    return out or None


def game_cover(run: dict) -> str:
    game = run.get("game")
    gdata = game.get("data") if isinstance(game, dict) else None
    assets = gdata.get("assets") if isinstance(gdata, dict) else None
    if not isinstance(assets, dict):
        return ""
    for key in COVER_ASSET_KEYS:
        asset = assets.get(key)
        uri = asset.get("uri") if isinstance(asset, dict) else None
        if isinstance(uri, str) and uri:
            return normalize_cover_uri(uri)
    return ""


# ---- URL cosmetics ----

def normalize_uri_https(u: str) -> str:
    if not u:
        return ""
    if u.startswith("http://"):
        return "https://" + u[len("http://"):]
    return u


def normalize_cover_uri(u: str) -> str:
    """https, and ".../cover?x" -> ".../cover.png?x"."""
    u = normalize_uri_https(u)
    i = u.find("/cover")
    if i < 0 or u.startswith("/cover.png", i):
        return u
    cut = i + len("/cover")
    return u[:cut] + ".png" + u[cut:]


def normalize_user_image_uri(u: str) -> str:
    """https, and a trailing "/image" segment gains ".png" (avatars need it)."""
    u = normalize_uri_https(u)
    i = u.rfind("/image")
    if i < 0 or u.startswith("/image.png", i):
        return u
    cut = i + len("/image")
    if cut == len(u) or u[cut] in "?#":
        return u[:cut] + ".png" + u[cut:]
    return u
