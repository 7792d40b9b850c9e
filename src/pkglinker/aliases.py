from pkglinker.core.models import LinkMode

LINK_MODE_ALIASES = {
    "hard": LinkMode.HARDLINK,
    "symbolic": LinkMode.SYMLINK,
    "sym": LinkMode.SYMLINK,
}

LINK_MODE_CHOICES = list(LINK_MODE_ALIASES.keys())

LINK_MODE_HELP_TEXT = (
    "Kind of link that replaces duplicate package files:\n"
    "  hard       : hard links, copies must share a device (default)\n"
    "  symbolic   : symbolic links pointing at the surviving copy\n"
    "Example    : %(prog)s --link-mode symbolic ~/projects\n"
)

EPILOG_TEXT = """
Examples:
  Link duplicate packages across all projects under ~/projects
  %(prog)s ~/projects

  Show what would be linked, without touching anything
  %(prog)s --dryrun ~/projects ~/work

  Print equivalent ln commands instead of linking (for review or scripts)
  %(prog)s --gen-ln-cmds ~/projects > link.sh

  Only link packages of at least 100KB, at most 4 levels below each root
  %(prog)s --size 100K --tree-depth 4 ~/projects

  Drop references to links that were removed or modified since the last run
  %(prog)s --prune

Reported savings count the linked files only: every copy keeps its own
package.json, so the total is slightly below the combined package size.

Configuration is read from ~/.pkglink (JSON): refsFile, concurrentOps, minSize,
treeDepth, consoleWidth, linkMode. Command-line values override it.
"""
