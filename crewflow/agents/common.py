"""Prompt fragments shared by every built-in role."""

REPOSITORY_STRUCTURE_RULES = """
CRITICAL - Respect the existing project structure.
Files placed in the wrong location are rejected.

MANDATORY RULES:
1. Read the "REPOSITORY STRUCTURE RULES" section at the top of your context.
2. Use only the existing root folders listed there.
3. Never invent new root folders such as "frontend/", "backend/" or "app/".
4. Follow the path pattern of the existing files exactly.

WRONG (rejected):
- frontend/src/components/Button.tsx   (invented "frontend/" root)
- my-app/config/setup.ts               (invented "my-app/" root)

CORRECT:
- src/components/Button.tsx            (when "src/" exists)
- docs/guide.md                        (when "docs/" exists)

Copy the folder structure you see. Do not add prefixes.
"""

ARTIFACT_FORMAT_RULES = """
CRITICAL - File artifact format.
Every file you produce MUST be a fenced block tagged with language and path:

```typescript:src/components/EventCard.tsx
export const EventCard = () => null;
```

- Use the real language name (typescript, python, css, yaml, ...)
- Use the FULL path relative to the project root
- Put the COMPLETE file in the block, never a snippet or a diff
- One block per file
"""


def build_system_prompt(*sections: str) -> str:
    return "\n\n".join(section.strip() for section in sections if section)
