from mangum import Mangum
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cryptoearn.api import create_app
from cryptoearn.structured_logging import configure_structured_logging

configure_structured_logging()

app = create_app()

handler = Mangum(app)
