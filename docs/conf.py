# Sphinx configuration for the lifo-cost-basis docs.

import os
import sys

# Add the project root (the folder that contains `src/`) to sys.path
sys.path.insert(0, os.path.abspath(".."))
# src/ directory (so `import lifo_cost_basis` works)
sys.path.insert(0, os.path.abspath("../src"))

# -- Project information -----------------------------------------------------

project = "LIFO cost basis"
copyright = "2025, Elliott Bache"
author = "Elliott Bache"
release = "0.0.1"

# -- General configuration ---------------------------------------------------

extensions = [
    "myst_parser",
    "sphinx.ext.autodoc",
    "sphinx.ext.autosummary",
    "sphinx.ext.doctest",
    "sphinx.ext.napoleon",
]

source_suffix = {".rst": "restructuredtext", ".md": "markdown"}

templates_path = ["_templates"]
exclude_patterns = ["_build", "Thumbs.db", ".DS_Store"]

# Generate autosummary stub pages automatically on build
autosummary_generate = True

# Ensure module pages include their members (functions, classes, etc.)
autodoc_default_options = {
    "members": True,
    "show-inheritance": True,
}

# make header anchors be automatically created from headers
myst_heading_anchors = 3

# This tells MyST: if it looks like a path, just leave it alone
# helps resolve warnings where myst can't find reference but link still works
myst_all_links_external = True

# docstrings are Google style
napoleon_google_docstring = True
napoleon_numpy_docstring = False

# -- Options for HTML output -------------------------------------------------

html_theme = "sphinx_rtd_theme"
