import argparse
import os

import uvicorn

from gatepass.server.server import factory_app


def main():
    parser = argparse.ArgumentParser(description="Run the gatepass verifier")
    parser.add_argument("--host", type=str, default=os.getenv("HOST", "0.0.0.0"), help="Bind address")
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT", 8000)), help="Bind port")

    args = parser.parse_args()

    app = factory_app(debug=os.getenv("ENV", "dev").lower() != "prod")
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
