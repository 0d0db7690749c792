"""
firehose_frames.py — Decode Bluesky firehose messages into tagged frames.

Two wire variants reach us:

  JSON (Jetstream)   {"kind": "commit", "did": ..., "commit": {...}}
                     older Jetstream builds send "type" instead of "kind"
                     and an `ops` array plus a `blocks` map instead of a
                     single `operation` + `record`.

  Binary (relay)     two concatenated DAG-CBOR objects: a header
                     {"op": 1, "t": "#commit"} and a body. A commit body's
                     `blocks` is a CAR archive holding the new records,
                     addressed by the CIDs listed in `ops`.

Every message becomes exactly one of:

  CommitFrame    — zero or more new posts ("create" on app.bsky.feed.post)
  InfoFrame      — relay notices ({"name", "message"})
  IdentityFrame  — handle changes
  AccountFrame   — account status changes
  UnknownFrame   — anything else, kept so the consumer can log it

Only the parts needed to pull post text out of a commit are implemented.
"""

import base64
import io
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Union

import cbor2

from pulselens.models.post import UnifiedPost
from pulselens.sources.base import to_iso

logger = logging.getLogger(__name__)

POST_COLLECTION = "app.bsky.feed.post"
_CID_LINK_TAG = 42


@dataclass
class CommitFrame:
    repo: str
    posts: list[UnifiedPost] = field(default_factory=list)


@dataclass
class InfoFrame:
    name: str
    message: str = ""


@dataclass
class IdentityFrame:
    did: str
    handle: Optional[str] = None


@dataclass
class AccountFrame:
    did: str
    active: Optional[bool] = None


@dataclass
class UnknownFrame:
    reason: str
    keys: list[str] = field(default_factory=list)


Frame = Union[CommitFrame, InfoFrame, IdentityFrame, AccountFrame, UnknownFrame]


def decode_frame(message: Union[str, bytes]) -> Frame:
    """Decode one websocket message (text or binary) into a Frame."""
    if isinstance(message, str):
        return _decode_json(message)

    # Jetstream may still deliver JSON in a binary websocket frame.
    if message[:1] in (b"{", b"["):
        try:
            return _decode_json(message.decode("utf-8"))
        except UnicodeDecodeError:
            pass
    return _decode_cbor(message)


# ── JSON (Jetstream) ──────────────────────────────────────────────────────────

def _decode_json(raw: str) -> Frame:
    try:
        msg = json.loads(raw)
    except ValueError:
        return UnknownFrame(reason="invalid JSON")
    if not isinstance(msg, dict):
        return UnknownFrame(reason=f"JSON {type(msg).__name__}")

    kind = msg.get("kind") or msg.get("type")
    did = str(msg.get("did") or msg.get("repo") or "unknown")

    if kind == "commit":
        if not isinstance(msg.get("commit"), dict) or not _commit_shape_ok(msg["commit"]):
            return UnknownFrame(reason="malformed commit", keys=sorted(msg)[:10])
        return CommitFrame(repo=did, posts=_posts_from_jetstream_commit(msg, did))
    if kind == "identity":
        identity = msg.get("identity") or {}
        if not isinstance(identity, dict):
            return UnknownFrame(reason="identity is not an object", keys=sorted(msg)[:10])
        return IdentityFrame(did=did, handle=identity.get("handle") or msg.get("handle"))
    if kind == "account":
        account = msg.get("account") or {}
        if not isinstance(account, dict):
            return UnknownFrame(reason="account is not an object", keys=sorted(msg)[:10])
        return AccountFrame(did=did, active=account.get("active", msg.get("active")))
    if kind == "info" or ("name" in msg and "message" in msg):
        return InfoFrame(name=str(msg.get("name", "info")), message=str(msg.get("message", "")))
    return UnknownFrame(reason=f"kind={kind!r}", keys=sorted(msg)[:10])


def _commit_shape_ok(commit: dict[str, Any]) -> bool:
    if "operation" in commit:
        record = commit.get("record")
        return record is None or isinstance(record, dict)
    return isinstance(commit.get("ops") or [], list)


def _make_post(record: dict[str, Any], uri: str, cid: str) -> Optional[UnifiedPost]:
    text = record.get("text")
    if not isinstance(text, str) or not text.strip():
        return None
    return UnifiedPost(
        text=text,
        created_at=to_iso(record.get("createdAt")),
        source="bluesky",
        uri=uri,
        cid=cid or uri,
    )


def _posts_from_jetstream_commit(msg: dict[str, Any], did: str) -> list[UnifiedPost]:
    commit = msg["commit"]

    # Current format: a single operation with the record inline.
    if "operation" in commit:
        if commit.get("operation") != "create" or commit.get("collection") != POST_COLLECTION:
            return []
        record = commit.get("record") or {}
        uri = f"at://{did}/{POST_COLLECTION}/{commit.get('rkey', '')}"
        post = _make_post(record, uri, str(commit.get("cid") or ""))
        return [post] if post else []

    # Legacy format: ops array, records keyed by CID in `blocks`.
    blocks = commit.get("blocks") or msg.get("blocks") or {}
    posts: list[UnifiedPost] = []
    for op in commit.get("ops") or []:
        if not _is_post_create(op):
            continue
        cid = str(op["cid"]).lstrip("/")
        record = blocks.get(cid) if isinstance(blocks, dict) else None
        if isinstance(record, dict):
            post = _make_post(record, f"at://{did}/{op['path']}", cid)
            if post:
                posts.append(post)
    return posts


def _is_post_create(op: Any) -> bool:
    return (
        isinstance(op, dict)
        and op.get("action") == "create"
        and str(op.get("path", "")).startswith(f"{POST_COLLECTION}/")
        and op.get("cid") is not None
    )


# ── Binary (DAG-CBOR + CAR) ───────────────────────────────────────────────────

def _decode_cbor(raw: bytes) -> Frame:
    stream = io.BytesIO(raw)
    decoder = cbor2.CBORDecoder(stream)
    try:
        first = decoder.decode()
        second = decoder.decode() if stream.tell() < len(raw) else None
    except (cbor2.CBORDecodeError, EOFError, ValueError) as exc:
        return UnknownFrame(reason=f"undecodable CBOR ({exc})")

    if isinstance(first, dict) and "op" in first and isinstance(second, dict):
        if first.get("op") == -1:
            return InfoFrame(name=str(second.get("error", "error")), message=str(second.get("message", "")))
        header_type = str(first.get("t", "")).lstrip("#")
        return _frame_from_body(header_type, second)

    if isinstance(first, dict):
        # Header-less message: infer the type from the body's shape.
        return _frame_from_body(None, first)
    return UnknownFrame(reason=f"CBOR {type(first).__name__}")


def _frame_from_body(header_type: Optional[str], body: dict[str, Any]) -> Frame:
    if header_type == "commit" or (
        header_type is None and {"seq", "ops", "blocks"} <= body.keys()
    ):
        repo = str(body.get("repo") or body.get("did") or "unknown")
        return CommitFrame(repo=repo, posts=_posts_from_car_commit(body, repo))
    if header_type == "info" or (header_type is None and {"name", "message"} <= body.keys()):
        return InfoFrame(name=str(body.get("name", "info")), message=str(body.get("message", "")))
    if header_type == "identity" or (header_type is None and {"did", "handle"} <= body.keys()):
        return IdentityFrame(did=str(body.get("did")), handle=body.get("handle"))
    if header_type == "account" or (header_type is None and {"did", "active"} <= body.keys()):
        return AccountFrame(did=str(body.get("did")), active=body.get("active"))
    return UnknownFrame(reason=f"t={header_type!r}", keys=sorted(str(k) for k in body)[:10])


def _posts_from_car_commit(body: dict[str, Any], repo: str) -> list[UnifiedPost]:
    blocks_raw = body.get("blocks")
    if not isinstance(blocks_raw, (bytes, bytearray)) or not blocks_raw:
        return []  # deletes carry no blocks
    ops = body.get("ops") or []
    if not isinstance(ops, list):
        return []

    try:
        blocks = read_car_blocks(bytes(blocks_raw))
    except ValueError as exc:
        logger.debug("[Firehose] Unreadable CAR in commit from %s: %s", repo, exc)
        return []

    posts: list[UnifiedPost] = []
    for op in ops:
        if not _is_post_create(op):
            continue
        cid_bytes = _cid_bytes(op["cid"])
        if cid_bytes is None or cid_bytes not in blocks:
            continue
        try:
            record = cbor2.loads(blocks[cid_bytes])
        except (cbor2.CBORDecodeError, ValueError):
            continue
        if isinstance(record, dict):
            post = _make_post(record, f"at://{repo}/{op['path']}", cid_to_string(cid_bytes))
            if post:
                posts.append(post)
    return posts


def _cid_bytes(link: Any) -> Optional[bytes]:
    # DAG-CBOR links are tag 42 around a 0x00 multibase prefix + binary CID.
    if isinstance(link, cbor2.CBORTag) and link.tag == _CID_LINK_TAG:
        value = link.value
        if isinstance(value, (bytes, bytearray)) and value[:1] == b"\x00":
            return bytes(value[1:])
    if isinstance(link, (bytes, bytearray)):
        return bytes(link)
    return None


def cid_to_string(cid: bytes) -> str:
    """Binary CIDv1 → base32 multibase string ("bafy...")."""
    return "b" + base64.b32encode(cid).decode("ascii").lower().rstrip("=")


def _read_varint(data: bytes, pos: int) -> tuple[int, int]:
    value = 0
    shift = 0
    while True:
        if pos >= len(data):
            raise ValueError("truncated varint")
        byte = data[pos]
        pos += 1
        value |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return value, pos
        shift += 7


def _cid_length(section: bytes) -> int:
    if section[:2] == b"\x12\x20":
        return 34  # CIDv0: bare sha2-256 multihash
    pos = 0
    _, pos = _read_varint(section, pos)            # version
    _, pos = _read_varint(section, pos)            # codec
    _, pos = _read_varint(section, pos)            # multihash code
    digest_len, pos = _read_varint(section, pos)   # multihash length
    return pos + digest_len


def read_car_blocks(data: bytes) -> dict[bytes, bytes]:
    """Parse a CARv1 archive into {binary CID: block bytes}."""
    header_len, pos = _read_varint(data, 0)
    pos += header_len
    if pos > len(data):
        raise ValueError("truncated CAR header")

    blocks: dict[bytes, bytes] = {}
    while pos < len(data):
        section_len, pos = _read_varint(data, pos)
        section = data[pos:pos + section_len]
        if len(section) < section_len:
            raise ValueError("truncated CAR section")
        cid_len = _cid_length(section)
        blocks[section[:cid_len]] = section[cid_len:]
        pos += section_len
    return blocks
