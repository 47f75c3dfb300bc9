"""
Git pre-commit guard for files holding unstashed Managed secrets.

For every git repository containing a tracked file, a check script lists
the repo-relative paths of files whose secrets are currently unstashed, and
a marked block in ``.git/hooks/pre-commit`` runs that script. Committing one
of the listed files is refused until it is stashed again.
"""

import logging
import re
import stat
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List
from urllib.parse import unquote, urlparse

logger = logging.getLogger(__name__)

CHECK_SCRIPT_NAME = "keeshepherd-check-unstashed-secrets.sh"

HOOK_FILE_HEADER = "#!/bin/sh"

HOOK_BLOCK = f"""
# KeeShepherd hook start
exec .git/hooks/{CHECK_SCRIPT_NAME}
# KeeShepherd hook end"""

_FILES_LIST_REGEX = re.compile(r'filesWithSecrets=\( "(.+)" \)\n', re.IGNORECASE)

_CHECK_SCRIPT_TEMPLATE = """#!/bin/bash

filesWithSecrets=( {files} )

IFS=$'\\n' changedFiles=( $(git diff --name-only & git diff --cached --name-only & git ls-files --exclude-standard --others) )

detectedUnstashedSecrets=false

for changedFile in "${{changedFiles[@]}}"
do
    for fileWithSecrets in "${{filesWithSecrets[@]}}"
    do
        if [ "$fileWithSecrets" == "$changedFile" ]; then
            echo "KeeShepherd detected unstashed secrets in" $changedFile ". Stash or remove them before committing" >&2
            git reset HEAD -- "$changedFile"
            detectedUnstashedSecrets=true
        fi
    done
done

if [ "$detectedUnstashedSecrets" = true ] ; then
    exit 1
fi
"""


class GitHookInterface(ABC):
    """Receives stash state changes of tracked files."""

    @abstractmethod
    def on_stash_state_changed(self, file_path: str, has_unstashed: bool) -> None:
        """
        Record whether a file currently holds live Managed secret values.

        Args:
            file_path: Local path or ``file://`` URI of the file
            has_unstashed: True once the file holds unstashed Managed secrets
        """
        pass


def _local_path(file_path: str) -> Path | None:
    """Return the local filesystem path for a file path or URI, None for remote URIs."""
    if "://" not in file_path:
        return Path(file_path)
    parsed = urlparse(file_path)
    if parsed.scheme != "file":
        return None
    return Path(unquote(parsed.path))


def read_listed_files(script_text: str) -> List[str]:
    """Extract the file list from a check script."""
    match = _FILES_LIST_REGEX.search(script_text)
    if not match:
        return []
    return match.group(1).split('" "')


def render_check_script(files: List[str]) -> str:
    return _CHECK_SCRIPT_TEMPLATE.format(files=" ".join(f'"{f}"' for f in files))


class GitHookSync(GitHookInterface):
    """Maintains pre-commit guards in every git repository enclosing a file."""

    def on_stash_state_changed(self, file_path: str, has_unstashed: bool) -> None:
        path = _local_path(file_path)
        if path is None:
            logger.debug(f"Skipping git hooks for non-local file {file_path}")
            return

        path = path.absolute()
        relative_parts = [path.name]
        for folder in path.parents:
            git_folder = folder / ".git"
            if git_folder.is_dir():
                self._update_repository(git_folder, "/".join(relative_parts), has_unstashed)
            relative_parts.insert(0, folder.name)

    def _update_repository(self, git_folder: Path, relative_path: str, has_unstashed: bool) -> None:
        hooks_folder = git_folder / "hooks"
        script_path = hooks_folder / CHECK_SCRIPT_NAME
        hook_path = hooks_folder / "pre-commit"

        script_text = script_path.read_text(encoding="utf-8") if script_path.exists() else ""
        files = read_listed_files(script_text)

        if has_unstashed:
            if relative_path not in files:
                files.append(relative_path)
        else:
            files = [f for f in files if f != relative_path]

        hook_text = hook_path.read_text(encoding="utf-8") if hook_path.exists() else ""

        if files:
            hooks_folder.mkdir(parents=True, exist_ok=True)
            script_path.write_text(render_check_script(files), encoding="utf-8")
            script_path.chmod(script_path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

            if not hook_text:
                hook_text = HOOK_FILE_HEADER
            if HOOK_BLOCK not in hook_text:
                hook_text += HOOK_BLOCK
        else:
            script_path.unlink(missing_ok=True)
            hook_text = hook_text.replace(HOOK_BLOCK, "")

        if not hook_text or hook_text.strip() == HOOK_FILE_HEADER:
            hook_path.unlink(missing_ok=True)
        else:
            hook_path.write_text(hook_text, encoding="utf-8")
            hook_path.chmod(hook_path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

        logger.debug(f"Updated git hooks in {git_folder}: {len(files)} file(s) guarded")
