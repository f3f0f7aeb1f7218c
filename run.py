import os
from portfolio_manager.main import create_app
import argparse


# Create the Flask application at module level
# This is required for gunicorn to find the app object
app = create_app()

if __name__ == '__main__':
    parser = argparse.ArgumentParser(
        description='Run the portfolio manager Flask application')
    parser.add_argument('--port', type=int, default=5000,
                        help='Port to run the application on')
    parser.add_argument('--refresh-on-start', action='store_true',
                        help='Start a background price refresh before serving')
    args = parser.parse_args()

    if args.refresh_on_start:
        app.extensions['portfolio_manager'].price_sync.start_refresh()

    # Debug mode should be controlled by FLASK_ENV, not hardcoded
    debug_mode = os.environ.get('FLASK_ENV', 'development') == 'development'
    # The reloader would build a second set of in-memory repositories
    app.run(host='0.0.0.0', port=args.port, debug=debug_mode, use_reloader=False)
