import os
from pathlib import Path

PROJECT_DIR = str(Path(__file__, '../../').resolve())
INTEGRATION = os.environ.get('DTT_INTEGRATION', '').lower() == 'true'
