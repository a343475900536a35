"""Session persistence: one human-readable YAML record per session.

Layout::

    <root>/
        <session-id>/
            session.yaml

Records are always rewritten whole, through a temporary file renamed over the
old one, so a reader never sees a partially written record.
"""

import os
import tempfile
import uuid
from pathlib import Path
from typing import Any

import logfire
import yaml
from pydantic import ValidationError

from aiterate.errors import CorruptRecordError, PersistenceError, SessionNotFoundError
from aiterate.languages import Language, parse_language
from aiterate.models import Iteration, Session, utcnow

RECORD_NAME = "session.yaml"


class _RecordDumper(yaml.SafeDumper):
    pass


def _str_representer(dumper: yaml.SafeDumper, data: str) -> yaml.ScalarNode:
    # source snapshots and test output read best as literal blocks
    if "\n" in data:
        return dumper.represent_scalar("tag:yaml.org,2002:str", data, style="|")
    return dumper.represent_scalar("tag:yaml.org,2002:str", data)


_RecordDumper.add_representer(str, _str_representer)


def dump_session(session: Session) -> str:
    data: dict[str, Any] = session.model_dump(mode="json")
    return yaml.dump(
        data, Dumper=_RecordDumper, sort_keys=False, allow_unicode=True, default_flow_style=False
    )


def load_session(text: str, source: str = "<string>") -> Session:
    """Deserialize a record.

    Raises:
        CorruptRecordError: If the text is not valid YAML or does not match the schema.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise CorruptRecordError(f"Malformed session record {source}: {e}") from e
    if not isinstance(data, dict):
        raise CorruptRecordError(f"Malformed session record {source}: expected a mapping")
    try:
        session = Session.model_validate(data)
    except ValidationError as e:
        raise CorruptRecordError(f"Invalid session record {source}: {e}") from e

    for position, iteration in enumerate(session.iterations, start=1):
        if iteration.number != position:
            raise CorruptRecordError(
                f"Invalid session record {source}: iteration {iteration.number} at position {position}"
            )
    return session


class SessionStore:
    """Creates, updates and loads session records under ``root``."""

    def __init__(self, root: str | Path):
        self.root = Path(root).expanduser()
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Failed to create storage directory {self.root}: {e}") from e

    def _record_path(self, session_id: str) -> Path:
        """Path of the record for ``session_id``, which must be a canonical uuid string.

        Raises:
            SessionNotFoundError: For any other id, ``../other/<id>`` included.
        """
        try:
            canonical = str(uuid.UUID(session_id))
        except (ValueError, TypeError, AttributeError):
            raise SessionNotFoundError(session_id) from None
        if canonical != session_id:
            raise SessionNotFoundError(session_id)
        return self.root / session_id / RECORD_NAME

    def _write(self, session: Session) -> None:
        path = self._record_path(session.id)
        try:
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".session-", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(dump_session(session))
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise PersistenceError(f"Failed to save session {session.id}: {e}") from e

    def create_session(self, description: str, language: Language | str) -> Session:
        """Allocate a new session with an empty iteration history.

        Raises:
            UnsupportedLanguageError: For an unknown language tag.
            PersistenceError: If the session directory or record cannot be created.
        """
        now = utcnow()
        session = Session(
            id=str(uuid.uuid4()),
            description=description,
            language=parse_language(language),
            created_at=now,
            updated_at=now,
        )
        try:
            (self.root / session.id).mkdir(parents=True)
        except OSError as e:
            raise PersistenceError(f"Failed to create session directory: {e}") from e
        self._write(session)

        logfire.info("Session created", session_id=session.id, language=str(session.language))
        return session

    def get_session(self, session_id: str) -> Session:
        """Load a full session record.

        Raises:
            SessionNotFoundError: If no record exists for ``session_id``.
            CorruptRecordError: If the record cannot be deserialized.
            PersistenceError: If the record cannot be read.
        """
        path = self._record_path(session_id)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise SessionNotFoundError(session_id) from None
        except OSError as e:
            raise PersistenceError(f"Failed to read session {session_id}: {e}") from e
        return load_session(text, str(path))

    def add_iteration(
        self, session_id: str, test_code: str, code: str, output: str, success: bool
    ) -> Iteration:
        """Append the next-numbered iteration and rewrite the record.

        Raises:
            SessionNotFoundError: If the session does not exist.
            PersistenceError: On read or write failure.
        """
        session = self.get_session(session_id)
        now = utcnow()
        iteration = Iteration(
            number=session.next_iteration_number(),
            test_code=test_code,
            code=code,
            output=output,
            success=success,
            timestamp=now,
        )
        session.iterations.append(iteration)
        session.updated_at = now
        self._write(session)

        logfire.info(
            "Iteration stored", session_id=session_id, number=iteration.number, success=success
        )
        return iteration

    def list_sessions(self) -> list[Session]:
        """Return every readable session, most recently updated first."""
        sessions: list[Session] = []
        for path in sorted(self.root.glob(f"*/{RECORD_NAME}")):
            try:
                sessions.append(self.get_session(path.parent.name))
            except PersistenceError as e:
                logfire.warn("Skipping unreadable session", path=str(path), error=str(e))
        return sorted(sessions, key=lambda s: s.updated_at, reverse=True)
