"""Local checkout access: tag resolution and commit-range walks via the git CLI."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Iterator

from trustaudit_core.errors import RepositoryError
from trustaudit_core.models import Commit

logger = logging.getLogger(__name__)

# Unit separator between fields, record separator between commits; neither
# can appear in a SHA and both are vanishingly rare in commit subjects.
_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"
_LOG_FORMAT = f"%H{_FIELD_SEP}%s{_RECORD_SEP}"


@dataclass(frozen=True)
class Tag:
    name: str
    commit_id: str


class Repository:
    def __init__(self, root: Path):
        self.root = root

    @classmethod
    def discover(cls, path: str | Path) -> Repository:
        """Open the repository containing ``path``."""
        path = Path(path)
        if not path.exists():
            raise RepositoryError(f"failed to open Git repo at local checkout path {str(path)!r}: path does not exist")
        try:
            top = _run_git(path, "rev-parse", "--show-toplevel")
        except RepositoryError as e:
            raise RepositoryError(f"failed to open Git repo at local checkout path {str(path)!r}") from e
        return cls(Path(top.strip()))

    def resolve_tag(self, what: str, spec: str) -> Tag:
        """Resolve ``spec`` to the commit a tag points at; ``what`` names the argument in errors."""
        name = spec[len("refs/tags/") :] if spec.startswith("refs/tags/") else spec
        try:
            commit_id = _run_git(self.root, "rev-parse", "--verify", "--quiet", f"refs/tags/{name}^{{commit}}")
        except RepositoryError as e:
            raise RepositoryError(f"`{what}` object {spec!r} is not a tag in {self.root}") from e
        tag = Tag(name=name, commit_id=commit_id.strip())
        logger.debug("`%s` resolves to %s", what, tag)
        return tag

    def iter_rev_list(self, from_tag: Tag, to_tag: Tag) -> Iterator[Commit]:
        """Yield commits reachable from ``to_tag`` but not from ``from_tag``, newest first."""
        output = _run_git(self.root, "log", f"--format={_LOG_FORMAT}", f"{from_tag.commit_id}..{to_tag.commit_id}")
        for record in output.split(_RECORD_SEP):
            record = record.strip("\n")
            if not record:
                continue
            sha, _, summary = record.partition(_FIELD_SEP)
            yield Commit(sha=sha, summary=summary)

    def rev_list(self, from_spec: str, to_spec: str) -> list[Commit]:
        from_tag = self.resolve_tag("from", from_spec)
        to_tag = self.resolve_tag("to", to_spec)
        commits = list(self.iter_rev_list(from_tag, to_tag))
        logger.info("%d commit(s) in %s..%s", len(commits), from_tag.name, to_tag.name)
        return commits

    def print_rev_list(self, from_spec: str, to_spec: str, output: IO[str]) -> None:
        for commit in self.rev_list(from_spec, to_spec):
            output.write(f"{commit.sha}\n")


def _run_git(cwd: Path, *args: str) -> str:
    try:
        completed = subprocess.run(["git", *args], cwd=cwd, capture_output=True, text=True, check=False)
    except OSError as e:
        if isinstance(e, FileNotFoundError) and e.filename == "git":
            raise RepositoryError("the `git` executable was not found on PATH") from e
        raise RepositoryError(f"cannot run git in {str(cwd)!r}: {e.strerror or e}") from e
    if completed.returncode != 0:
        detail = completed.stderr.strip() or completed.stdout.strip() or f"exit status {completed.returncode}"
        raise RepositoryError(f"`git {' '.join(args)}` failed: {detail}")
    return completed.stdout
