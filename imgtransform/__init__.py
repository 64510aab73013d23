from importlib import metadata
from pathlib import Path


def get_version() -> str:
  version_file = Path(__file__).parent.resolve().with_name('VERSION')
  if version_file.is_file():
    return version_file.read_text().strip()
  # Installed from a wheel; VERSION stays at the source root.
  return metadata.version('imgtransform')


version = get_version()
