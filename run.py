"""
Point d'entrée: `python run.py` en local, `gunicorn run:app` en production
"""

import os

from dotenv import load_dotenv
load_dotenv()

from storefront import create_app, db

config_name = os.environ.get('FLASK_ENV', 'development')
app = create_app(config_name)


if __name__ == '__main__':
    if config_name != 'production':
        with app.app_context():
            db.create_all()
    app.run(
        host=os.environ.get('HOST', '127.0.0.1'),
        port=int(os.environ.get('PORT', 5000)),
        debug=app.config.get('DEBUG', False)
    )
