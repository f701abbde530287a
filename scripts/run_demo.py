"""
Run the Verso API locally.

Usage:
    python scripts/run_demo.py [--port 8000] [--no-reload]

Model providers are read from the environment or a .env file
(MISTRAL_API_KEY, ANTHROPIC_API_KEY, ...). With none configured the engine
still answers, from its canned fallbacks.
"""

import argparse

import uvicorn


def main():
    parser = argparse.ArgumentParser(description="Run the Verso reflection API")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--no-reload", action="store_true")
    args = parser.parse_args()

    print("=" * 60)
    print("  Verso - reflection engine")
    print("=" * 60)
    print()
    print(f"Starting server at http://localhost:{args.port}")
    print(f"API docs: http://localhost:{args.port}/docs")
    print("Press Ctrl+C to stop.")
    print()

    uvicorn.run(
        "verso.api.app:app",
        host=args.host,
        port=args.port,
        reload=not args.no_reload,
    )


if __name__ == "__main__":
    main()
