"""Starter file templates keyed by extension."""

import posixpath
import re
from string import Template

CREATED_WITH = "Created with autofix-bot"

_HTML = Template("""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>$title</title>
    <style>
        * {
            margin: 0;
            padding: 0;
            box-sizing: border-box;
        }

        body {
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
            line-height: 1.6;
            color: #333;
        }

        .container {
            max-width: 1200px;
            margin: 0 auto;
            padding: 20px;
        }
    </style>
</head>
<body>
    <header>
        <div class="container">
            <h1>$title</h1>
        </div>
    </header>

    <main>
        <div class="container">
            <p>Welcome to $title!</p>
        </div>
    </main>

    <script>
        console.log('Page loaded!');
    </script>
</body>
</html>""")

_JS = Template("""/**
 * $title
 * $created
 */

console.log('$title loaded!');
""")

_TS = Template("""/**
 * $title
 * $created
 */

const message: string = '$title loaded!';
console.log(message);
""")

_CSS = Template("""/**
 * $title Styles
 */

* {
    margin: 0;
    padding: 0;
    box-sizing: border-box;
}

body {
    font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
    line-height: 1.6;
    color: #333;
    background: #f5f5f5;
}
""")

_PY = Template('''"""
$title
$created
"""


def main():
    """Main function"""
    print("Hello from $name!")


if __name__ == "__main__":
    main()
''')

_JAVA = Template("""/**
 * $title
 * $created
 */
public class $class_name {

    public static void main(String[] args) {
        System.out.println("Hello from $class_name!");
    }
}
""")

_JSON = Template("""{
    "name": "$name",
    "version": "1.0.0",
    "description": "$title"
}""")

_MD = Template("""# $title

$created.

## Getting Started

Add your content here.
""")

_YAML = Template("""# $title Configuration
name: $name
version: 1.0.0
""")

_XML = Template("""<?xml version="1.0" encoding="UTF-8"?>
<!-- $title -->
<root>
    <name>$name</name>
</root>
""")

_DEFAULT = Template("// $title\n// $created\n")

TEMPLATES: dict[str, Template] = {
    "html": _HTML,
    "htm": _HTML,
    "js": _JS,
    "jsx": _JS,
    "ts": _TS,
    "tsx": _TS,
    "css": _CSS,
    "scss": _CSS,
    "py": _PY,
    "java": _JAVA,
    "json": _JSON,
    "md": _MD,
    "yml": _YAML,
    "yaml": _YAML,
    "xml": _XML,
}

# Extensions a "create <file>" instruction may name for a template fallback
TEMPLATE_EXTENSIONS: tuple[str, ...] = tuple(TEMPLATES) + ("txt",)


def title_case(name: str) -> str:
    """``my-cool_page`` -> ``My Cool Page``."""
    return " ".join(word[:1].upper() + word[1:] for word in re.split(r"[-_]", name))


def render_template(path: str) -> str:
    """Render the starter content for ``path`` based on its extension."""
    base = posixpath.basename(path)
    name, _, ext = base.rpartition(".")
    if not name:
        name, ext = base, ""
    template = TEMPLATES.get(ext.lower(), _DEFAULT)
    return template.safe_substitute(
        title=title_case(name),
        name=name,
        class_name=name[:1].upper() + re.sub(r"[-_]", "", name[1:]),
        created=CREATED_WITH,
    )
