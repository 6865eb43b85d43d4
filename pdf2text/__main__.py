import os

from pdf2text import create_app


def main() -> None:
    app = create_app()
    port = int(os.environ.get("PORT", "3000"))
    app.logger.info("PDF to Markdown converter running on http://localhost:%d", port)
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
