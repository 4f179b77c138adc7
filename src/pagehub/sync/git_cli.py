"""VersionControlGateway backed by the ``git`` command-line tool.

Every call runs ``git -C <workspace> ...`` as an asyncio subprocess, so no
operation blocks the event loop.  Credentials for HTTPS remotes are passed as
a one-off ``http.extraHeader`` and never written to the repository config.
"""

from __future__ import annotations

import asyncio
import base64
import os

from loguru import logger

from pagehub.errors import GitCommandError
from pagehub.sync.gateway import Author, LogEntry, StatusEntry

_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"
_LOG_FORMAT = f"%H{_FIELD_SEP}%an{_FIELD_SEP}%ae{_FIELD_SEP}%at{_FIELD_SEP}%B{_RECORD_SEP}"


def _auth_config(token: str | None) -> list[str]:
    if not token:
        return []
    creds = base64.b64encode(f"{token}:x-oauth-basic".encode()).decode()
    return ["-c", f"http.extraHeader=Authorization: Basic {creds}"]


def _identity_env(author: Author) -> dict[str, str]:
    return {
        "GIT_AUTHOR_NAME": author.name,
        "GIT_AUTHOR_EMAIL": author.email,
        "GIT_COMMITTER_NAME": author.name,
        "GIT_COMMITTER_EMAIL": author.email,
    }


def parse_porcelain(output: str) -> list[StatusEntry]:
    """Parse ``git status --porcelain=v1 -z`` output."""
    entries: list[StatusEntry] = []
    records = output.split("\0")
    i = 0
    while i < len(records):
        record = records[i]
        i += 1
        if len(record) < 4:
            continue
        xy, path = record[:2], record[3:]
        if "R" in xy or "C" in xy:
            # rename/copy: the source path follows as its own record
            source = records[i] if i < len(records) else ""
            i += 1
            entries.append(StatusEntry(path=path, status="added"))
            if "R" in xy and source:
                entries.append(StatusEntry(path=source, status="deleted"))
            continue
        if xy == "??" or ("A" in xy and "D" not in xy):
            status = "added"
        elif "D" in xy:
            status = "deleted"
        else:
            status = "modified"
        entries.append(StatusEntry(path=path, status=status))
    return entries


class GitCliGateway:
    """Runs git against a single working directory."""

    def __init__(self, root: str, *, git: str = "git", author: Author | None = None) -> None:
        self.root = str(root)
        self.git = git
        #: Identity used for merge commits created by ``pull``
        self.author = author or Author(name="Knowledge Hub", email="app@knowledgehub.local")

    # ------------------------------------------------------------------
    # Subprocess plumbing
    # ------------------------------------------------------------------

    async def _run(
        self,
        *args: str,
        config: list[str] | None = None,
        env: dict[str, str] | None = None,
    ) -> bytes:
        argv = [*(config or []), *args]
        proc_env = {**os.environ, "GIT_TERMINAL_PROMPT": "0", **(env or {})}
        proc = await asyncio.create_subprocess_exec(
            self.git,
            "-C",
            self.root,
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=proc_env,
        )
        stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            # argv without the config so auth headers stay out of the message
            raise GitCommandError(list(args), proc.returncode or -1, stderr.decode(errors="replace"))
        logger.debug(f"git {' '.join(args)} ok")
        return stdout

    async def _has_head(self) -> bool:
        try:
            await self._run("rev-parse", "--verify", "-q", "HEAD")
        except GitCommandError:
            return False
        return True

    async def _current_branch(self) -> str:
        out = await self._run("symbolic-ref", "--short", "HEAD")
        return out.decode().strip()

    # ------------------------------------------------------------------
    # Working tree
    # ------------------------------------------------------------------

    async def init(self) -> None:
        await self._run("init", "--initial-branch=main")

    async def status(self) -> list[StatusEntry]:
        out = await self._run("status", "--porcelain=v1", "-z", "--untracked-files=all")
        return parse_porcelain(out.decode("utf-8", errors="surrogateescape"))

    async def add(self, path: str) -> None:
        await self._run("add", "--", path)

    async def remove(self, path: str) -> None:
        await self._run("rm", "--cached", "--ignore-unmatch", "-q", "--", path)

    async def unstage(self, path: str) -> None:
        if await self._has_head():
            await self._run("reset", "-q", "HEAD", "--", path)
        else:
            await self._run("rm", "--cached", "--ignore-unmatch", "-q", "--", path)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    async def commit(self, message: str, author: Author) -> str:
        await self._run("commit", "-q", "-m", message, env=_identity_env(author))
        out = await self._run("rev-parse", "HEAD")
        return out.decode().strip()

    async def log(self, depth: int = 20, path: str | None = None) -> list[LogEntry]:
        if not await self._has_head():
            return []
        args = ["log", f"-n{depth}", f"--format={_LOG_FORMAT}"]
        if path:
            args += ["--", path]
        out = (await self._run(*args)).decode("utf-8", errors="replace")

        entries: list[LogEntry] = []
        for record in out.split(_RECORD_SEP):
            record = record.strip("\n")
            if not record:
                continue
            oid, name, email, ts, message = record.split(_FIELD_SEP, 4)
            entries.append(
                LogEntry(
                    oid=oid,
                    message=message.strip(),
                    author=Author(name=name, email=email),
                    timestamp=int(ts),
                )
            )
        return entries

    async def read_file_at(self, revision: str, path: str) -> str:
        out = await self._run("show", f"{revision}:{path}")
        return out.decode("utf-8")

    # ------------------------------------------------------------------
    # Remote
    # ------------------------------------------------------------------

    async def has_remote(self, remote: str = "origin") -> bool:
        out = await self._run("remote")
        return remote in out.decode().split()

    async def push(
        self, remote: str = "origin", branch: str | None = None, token: str | None = None
    ) -> None:
        await self._run("push", remote, branch or "HEAD", config=_auth_config(token))

    async def pull(
        self, remote: str = "origin", branch: str | None = None, token: str | None = None
    ) -> None:
        branch = branch or await self._current_branch()
        await self._run(
            "pull",
            "--no-rebase",
            "--no-edit",
            "-q",
            remote,
            branch,
            config=_auth_config(token),
            env=_identity_env(self.author),
        )
