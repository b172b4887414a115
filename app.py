"""Development entrypoint delegating to the application package."""

import logging

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from medreg.main import create_app  # noqa: E402

logging.basicConfig(level=logging.INFO)

app = create_app()


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5050, debug=True)
