# idl_loader.py
# Reads .idl files, expands #include directives recursively and keeps a line map back to the originating files.
import os
import re
import sys
from typing import List, Optional, Set, Tuple

from idl_errors import IncludeNotFoundError, SourceEncodingError

INCLUDE_RE = re.compile(r'^\s*#\s*include\s*(?:"([^"]+)"|<([^>]+)>)')


def read_idl_file(path: str) -> str:
    with open(path, 'rb') as f:
        data = f.read()
    try:
        return data.decode('utf-8')
    except UnicodeDecodeError as e:
        line = data.count(b'\n', 0, e.start) + 1
        raise SourceEncodingError(e.reason, file=path, line=line) from e


class SourceMap:
    """Maps a line of the concatenated text back to (file, line) in the file it came from."""

    def __init__(self):
        self._lines: List[Tuple[str, int]] = []

    def append(self, file: str, line: int):
        self._lines.append((file, line))

    def locate(self, line: Optional[int]) -> Tuple[Optional[str], Optional[int]]:
        if line is None or not self._lines:
            return (None, line)
        index = min(max(line, 1), len(self._lines)) - 1
        return self._lines[index]

    def files(self) -> List[str]:
        seen = []
        for file, _ in self._lines:
            if file not in seen:
                seen.append(file)
        return seen

    def __len__(self):
        return len(self._lines)


class SourceText:
    def __init__(self, text: str, source_map: SourceMap, root_file: str):
        self.text = text
        self.source_map = source_map
        self.root_file = root_file


class IdlFileLoader:
    """
    Loads a root IDL file and splices every included file in place of its #include line.
    Includes are searched next to the including file first, then along include_dirs in order.
    A file is only ever included once.
    """

    def __init__(self, include_dirs: Optional[List[str]] = None, verbose: bool = False):
        self.include_dirs = list(include_dirs or [])
        self.verbose = verbose

    def debug_print(self, message: str) -> None:
        if self.verbose:
            print(f"[DEBUG] {message}", file=sys.stderr)

    def load(self, idl_file: str) -> SourceText:
        if not os.path.isfile(idl_file):
            raise IncludeNotFoundError(idl_file, file=idl_file)
        return self.load_text(read_idl_file(idl_file), idl_file)

    def load_text(self, text: str, file_name: str = "<string>") -> SourceText:
        """Expand includes inside already-read text; file_name is used for diagnostics and as the base directory."""
        lines: List[str] = []
        source_map = SourceMap()
        included: Set[str] = set()
        if os.path.isfile(file_name):
            included.add(os.path.realpath(file_name))
        self._expand(text, file_name, lines, source_map, included)
        self.debug_print(f"Loaded {file_name}: {len(lines)} lines from {len(source_map.files())} file(s)")
        return SourceText("\n".join(lines) + "\n", source_map, file_name)

    def find_include(self, name: str, including_file: str) -> Optional[str]:
        candidates = []
        base_dir = os.path.dirname(including_file) if os.path.isfile(including_file) else os.getcwd()
        candidates.append(os.path.join(base_dir, name))
        for include_dir in self.include_dirs:
            candidates.append(os.path.join(include_dir, name))
        for candidate in candidates:
            if os.path.isfile(candidate):
                return candidate
        return None

    def _expand(self, text: str, file_name: str, lines: List[str], source_map: SourceMap, included: Set[str]):
        for line_no, line in enumerate(text.splitlines(), start=1):
            match = INCLUDE_RE.match(line)
            if not match:
                lines.append(line)
                source_map.append(file_name, line_no)
                continue
            name = match.group(1) or match.group(2)
            path = self.find_include(name, file_name)
            if path is None:
                raise IncludeNotFoundError(name, file=file_name, line=line_no, column=1)
            real_path = os.path.realpath(path)
            if real_path in included:
                self.debug_print(f"Skipping already included {path}")
                continue
            included.add(real_path)
            self.debug_print(f"Including {path} from {file_name}:{line_no}")
            self._expand(read_idl_file(path), path, lines, source_map, included)
