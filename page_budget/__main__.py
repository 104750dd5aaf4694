"""Entry point for: python -m page_budget"""

import asyncio
import sys

from .cli import main, parse_args

if __name__ == "__main__":
    args = parse_args(sys.argv[1:])
    asyncio.run(main(args))
