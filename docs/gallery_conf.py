"""Configuration of the ``mkdocs-gallery`` plugin that renders ``docs/examples``."""

import os
import re

from mkdocs_gallery.gen_gallery import DefaultResetArgv
from mkdocs_gallery.sorting import FileNameSortKey

conf = {
    "reset_argv": DefaultResetArgv(),
    # only scripts named ``example_*.py`` are executed
    "filename_pattern": f"{re.escape(os.sep)}example_",
    "abort_on_example_error": True,
    "within_subsection_order": FileNameSortKey,
    "image_scrapers": ("matplotlib",),
}
