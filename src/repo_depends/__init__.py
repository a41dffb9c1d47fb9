"""The `repo-depends` APIs."""

__version__ = "0.1.0"

from importlib import import_module
from pathlib import Path
from pkgutil import iter_modules

from .repo_depends import *

# Automatically load all modules in the `repo_depends` package,
# so all ReportRenderers will auto-register themselves:
package_dir = Path(__file__).resolve().parent
for _, module_name, _ in iter_modules([str(package_dir)]):  # type: ignore
    if module_name != "__main__":
        module = import_module(f"{__name__}.{module_name}")
