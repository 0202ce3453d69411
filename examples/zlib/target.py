import sys
import zlib


def main() -> int:
    with open(sys.argv[1], "rb") as f:
        data = f.read()

    try:
        result = zlib.decompress(data)
    except zlib.error as e:
        print(f"zlib: {e}", file=sys.stderr)
        return 1

    with open(sys.argv[2], "wb") as f:
        f.write(result)

    return 0


if __name__ == "__main__":
    sys.exit(main())
