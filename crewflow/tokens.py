"""Token estimation and language detection for repository excerpts."""

import math

CHARS_PER_TOKEN = 3.5

LANGUAGE_MAP = {
    # JavaScript / TypeScript
    "ts": "typescript",
    "tsx": "typescript",
    "js": "javascript",
    "jsx": "javascript",
    "mjs": "javascript",
    "cjs": "javascript",
    "vue": "vue",
    "svelte": "svelte",
    "astro": "astro",
    # Mobile
    "swift": "swift",
    "kt": "kotlin",
    "kts": "kotlin",
    "dart": "dart",
    # Backend
    "py": "python",
    "pyw": "python",
    "go": "go",
    "rs": "rust",
    "java": "java",
    "rb": "ruby",
    "php": "php",
    "cs": "csharp",
    "cpp": "cpp",
    "cc": "cpp",
    "hpp": "cpp",
    "c": "c",
    "h": "c",
    # Markup / styling
    "html": "html",
    "htm": "html",
    "css": "css",
    "scss": "scss",
    "sass": "sass",
    "less": "less",
    "styl": "stylus",
    # Data / config
    "json": "json",
    "yaml": "yaml",
    "yml": "yaml",
    "toml": "toml",
    "xml": "xml",
    "ini": "ini",
    "env": "bash",
    # Docs
    "md": "markdown",
    "mdx": "mdx",
    "rst": "restructuredtext",
    "txt": "plaintext",
    # Shell
    "sh": "bash",
    "bash": "bash",
    "zsh": "zsh",
    "fish": "fish",
    # Database
    "sql": "sql",
    "prisma": "prisma",
    # Other
    "graphql": "graphql",
    "gql": "graphql",
    "proto": "protobuf",
    "tf": "terraform",
}


def estimate_tokens(text: str) -> int:
    """Approximate token count, one token per 3.5 characters."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def detect_language(path: str) -> str:
    """
    Map a file path to a language tag.

    Unknown extensions map to the extension itself so highlighting still
    has something to go on; files without an extension are ``plaintext``
    unless they are a Dockerfile or Makefile.
    """
    name = path.rsplit("/", 1)[-1].lower()

    if name == "dockerfile" or name.startswith("dockerfile."):
        return "dockerfile"
    if name in ("makefile", "gnumakefile"):
        return "makefile"

    if "." not in name:
        return "plaintext"

    ext = name.rsplit(".", 1)[-1]
    if not ext:
        return "plaintext"
    return LANGUAGE_MAP.get(ext, ext)
