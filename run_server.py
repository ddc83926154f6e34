#!/usr/bin/env python3
"""
Script para iniciar el servidor del firmador
"""
import argparse
import sys

import uvicorn

from firmador.config import FirmadorConfig, FirmadorConfigError


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Servidor HTTP de firma de XML")
    parser.add_argument("--host", help="Host (default: FIRMA_HOST o localhost)")
    parser.add_argument("--port", type=int, help="Puerto (default: FIRMA_PORT o 3002)")
    parser.add_argument("--reload", action="store_true", help="Recargar al cambiar el código")
    args = parser.parse_args(argv)

    try:
        config = FirmadorConfig.from_env()
    except FirmadorConfigError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1

    host = args.host or config.host
    port = args.port or config.port
    print(f"🚀 Server running at http://{host}:{port}")
    print(f"   Salida: {config.output_dir}")

    uvicorn.run(
        "firmador.main:create_app",
        factory=True,
        host=host,
        port=port,
        reload=args.reload,
        log_level="info",
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
