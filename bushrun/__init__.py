import os
from flask import Flask


def create_app(test_config=None):
    app = Flask(__name__)

    try:
        max_upload_kb = int(os.environ.get("MAX_UPLOAD_KB", "512"))
    except ValueError:
        max_upload_kb = 512

    app.config.from_mapping(
        RACE_TIMEZONE=os.environ.get("RACE_TIMEZONE", "Australia/Sydney"),
        CSV_FILENAME_PREFIX=os.environ.get("CSV_FILENAME_PREFIX", "bushrun-next-race"),
        MAX_CONTENT_LENGTH=max_upload_kb * 1024,
    )
    if test_config:
        app.config.update(test_config)

    from . import routes
    app.register_blueprint(routes.bp)

    app.logger.info("Handicap engine ready timezone=%s", app.config["RACE_TIMEZONE"])
    return app


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5000))
    create_app().run(host='0.0.0.0', port=port)
