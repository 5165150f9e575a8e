"""Pre-compiled regex patterns shared across the dashboard.

Usage:
    from utils.patterns import UNSAFE_FILENAME_CHARS, BOLD_MARKUP
"""

import re

# Anything other than ASCII letters, digits and dots is replaced in upload names
UNSAFE_FILENAME_CHARS = re.compile(r'[^a-zA-Z0-9.]')

# Loose email shape check for login and user forms
EMAIL = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')

# Help article markup
BOLD_MARKUP = re.compile(r'\*\*(.+?)\*\*')
ORDERED_ITEM = re.compile(r'^(\d+)\.\s+(.*)$')

# Whitespace normalization: multiple spaces/tabs/newlines
WHITESPACE = re.compile(r'\s+')

# Public object URLs: <project>/storage/v1/object/public/<bucket>/<path>
PUBLIC_OBJECT_PATH = re.compile(r'/storage/v1/object/(?:public|sign)/([^/]+)/(.+)$')
