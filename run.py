import logging

from flask.cli import FlaskGroup

from linksaver import create_app

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
log = logging.getLogger("httpx")
log.setLevel(logging.WARNING)

cli = FlaskGroup(name="linksaver", create_app=create_app)


def main() -> None:
    cli.main(prog_name="linksaver")


if __name__ == "__main__":
    main()
