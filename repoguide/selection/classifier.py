"""Path predicates used to decide which repository files are worth reading.

Every function here is pure: it looks only at the slash-separated path
(and, for the binary check, the optional byte size) and never touches
the network or disk.
"""

from __future__ import annotations

from typing import Optional

BINARY_SIZE_LIMIT = 1024 * 1024

BINARY_EXTENSIONS = frozenset(
    {
        ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".svg", ".webp",
        ".pdf", ".zip", ".tar", ".gz", ".tgz", ".7z", ".rar", ".bz2", ".xz",
        ".exe", ".dll", ".so", ".dylib", ".a", ".o", ".obj",
        ".class", ".jar", ".war",
        ".mp3", ".mp4", ".wav", ".avi", ".mov", ".ogg", ".flac", ".webm",
        ".woff", ".woff2", ".ttf", ".eot", ".otf",
        ".bin", ".dat",
        ".pyc", ".pyo",
        ".node",
        ".db", ".sqlite", ".sqlite3",
    }
)

MINIFIED_MARKERS: tuple[str, ...] = (
    ".min.js",
    ".min.css",
    ".bundle.js",
    ".bundle.css",
    ".chunk.js",
)

CONFIG_FILENAMES: tuple[str, ...] = (
    "package.json",
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    "requirements.txt",
    "setup.py",
    "setup.cfg",
    "pyproject.toml",
    "pipfile",
    "cargo.toml",
    "go.mod",
    "go.sum",
    "pom.xml",
    "build.gradle",
    "gemfile",
    "composer.json",
    "dockerfile",
    "docker-compose.yml",
    "docker-compose.yaml",
    "makefile",
    ".env.example",
    "tsconfig.json",
    ".eslintrc",
    ".prettierrc",
    "next.config.js",
    "vite.config.js",
    "webpack.config.js",
    "rollup.config.js",
    "tailwind.config.js",
)

DOCUMENTATION_MARKERS: tuple[str, ...] = (
    "readme",
    "contributing",
    "changelog",
    "license",
    "docs/",
    "doc/",
)

ENTRY_POINT_FILENAMES = frozenset(
    {
        "index.js",
        "index.ts",
        "index.tsx",
        "index.jsx",
        "main.js",
        "main.ts",
        "main.py",
        "main.go",
        "main.rs",
        "__main__.py",
        "app.js",
        "app.ts",
        "app.tsx",
        "app.py",
        "server.js",
        "server.ts",
        "manage.py",
    }
)

SOURCE_EXTENSIONS = frozenset(
    {
        ".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs",
        ".py", ".rb", ".go", ".java", ".kt", ".scala",
        ".c", ".cpp", ".h", ".hpp", ".cs",
        ".php", ".swift", ".rs",
        ".vue", ".svelte",
    }
)


def basename(path: str) -> str:
    return path.rsplit("/", 1)[-1]


def extension(path: str) -> str:
    """Return the lower-cased final extension of the file name, or ''."""
    name = basename(path).lower()
    if "." not in name:
        return ""
    return "." + name.rsplit(".", 1)[-1]


def depth(path: str) -> int:
    """Number of path separators; root-level files have depth 0."""
    return path.count("/")


def is_binary(path: str, size: Optional[int] = None, *, size_limit: int = BINARY_SIZE_LIMIT) -> bool:
    if extension(path) in BINARY_EXTENSIONS:
        return True
    return size is not None and size > size_limit


def is_minified(path: str) -> bool:
    return any(marker in path for marker in MINIFIED_MARKERS)


def is_config(path: str) -> bool:
    lowered = path.lower()
    return any(lowered.endswith(name) for name in CONFIG_FILENAMES)


def is_documentation(path: str) -> bool:
    lowered = path.lower()
    return any(marker in lowered for marker in DOCUMENTATION_MARKERS)


def is_entry_point(path: str) -> bool:
    return basename(path).lower() in ENTRY_POINT_FILENAMES


def is_source(path: str) -> bool:
    return extension(path) in SOURCE_EXTENSIONS


def is_root_level(path: str) -> bool:
    return depth(path) == 0


def categories(path: str) -> frozenset[str]:
    """Return every scoring category the path falls into."""
    found = set()
    if is_root_level(path):
        found.add("root")
    if is_entry_point(path):
        found.add("entry_point")
    if is_config(path):
        found.add("config")
    if is_documentation(path):
        found.add("documentation")
    if is_source(path):
        found.add("source")
    return frozenset(found)


__all__ = [
    "BINARY_EXTENSIONS",
    "BINARY_SIZE_LIMIT",
    "categories",
    "depth",
    "extension",
    "is_binary",
    "is_config",
    "is_documentation",
    "is_entry_point",
    "is_minified",
    "is_root_level",
    "is_source",
]
