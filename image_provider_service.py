#!/usr/bin/env python3
"""
TMDB Multi-Language Images provider service.

Exposes the TMDB image provider to a media-library host over HTTP.

Architecture:
    /provider (GET)
        - Provider identity and capabilities
    /supports?type=Movie (GET)
        - Whether images can be fetched for a host item type
    /{movie|series|tv}/{tmdb_id}/images (GET)
        - Posters, backdrops, and logos from TMDB, ranked upstream by the
          configured language list; always 200, empty list on failure
    /image?url=... (GET)
        - Streams the raw bytes of a TMDB image back to the host

Environment Variables:
    PORT: Server port (default: 5200)
    LOG_LEVEL: Logging level (default: INFO)
    STRUCTURED_LOGGING: JSON log lines (default: false)
    TMDB_API_KEY: TMDB API key (required)
    TMDB_PREFERRED_LANGUAGES: Language priority list (default: de,en,null)
    TMDB_DEBUG_LOGGING: Trace every TMDB request (default: false)
"""

import logging
import os
from urllib.parse import urlparse

import requests
from flask import Flask, Response, jsonify, request

from config import ProviderConfiguration
from constants import (
    PLUGIN_DESCRIPTION,
    PLUGIN_ID,
    PLUGIN_NAME,
    PROVIDER_NAME,
    PROVIDER_ORDER,
    PROVIDER_VERSION,
    TMDB_IMAGE_ORIGIN,
    TMDB_PROVIDER_KEY,
    MediaKind,
)
from logging_config import configure_logging, setup_flask_request_id
from metrics import metrics
from models import MediaItem
from tmdb_image_provider import TmdbImageProvider

logger = logging.getLogger(__name__)

# Host item type for each URL path segment
PATH_ITEM_TYPES = {
    "movie": "Movie",
    "series": "Series",
    "tv": "Series",
}

IMAGE_CHUNK_SIZE = 64 * 1024


def create_app(provider: TmdbImageProvider = None) -> Flask:
    """
    Build the Flask application.

    Args:
        provider: Optional provider instance (tests inject one with a fake
            session). Defaults to one reading configuration from the
            environment on every request.

    Returns:
        Configured Flask app
    """
    app = Flask(__name__)
    setup_flask_request_id(app)
    provider = provider or TmdbImageProvider(ProviderConfiguration.from_env)
    app.config["IMAGE_PROVIDER"] = provider

    @app.route('/provider', methods=['GET'])
    def provider_info():
        """Return provider identity and capabilities."""
        return jsonify({
            "name": PLUGIN_NAME,
            "id": PLUGIN_ID,
            "description": PLUGIN_DESCRIPTION,
            "version": PROVIDER_VERSION,
            "provider": PROVIDER_NAME,
            "order": PROVIDER_ORDER,
            "kinds": [kind.value for kind in MediaKind],
            "imageTypes": [t.value for t in provider.get_supported_images(MediaItem("Movie"))],
        })

    @app.route('/supports', methods=['GET'])
    def supports():
        """
        Check support for a host item type.

        Usage:
            /supports?type=Movie
        """
        item_type = request.args.get('type', '')
        item = MediaItem(item_type=item_type)
        return jsonify({"type": item_type, "supported": provider.supports(item)})

    @app.route('/<kind>/<tmdb_id>/images', methods=['GET'])
    def get_images(kind: str, tmdb_id: str):
        """
        Return image candidates for a movie or series.

        Usage:
            /movie/550/images
            /tv/1399/images?name=Game+of+Thrones
        """
        item_type = PATH_ITEM_TYPES.get(kind.lower())
        if not item_type:
            return jsonify({
                "error": f"Unsupported media kind '{kind}'",
                "supported": sorted(PATH_ITEM_TYPES),
            }), 404

        item = MediaItem(
            item_type=item_type,
            name=request.args.get('name', '') or f"{item_type} {tmdb_id}",
            provider_ids={TMDB_PROVIDER_KEY: tmdb_id},
        )
        images = provider.get_images(item)
        return jsonify({
            "provider": PROVIDER_NAME,
            "size": len(images),
            "Images": [image.to_dict() for image in images],
        })

    @app.route('/image', methods=['GET'])
    def get_image():
        """
        Proxy the raw bytes of a TMDB image.

        Usage:
            /image?url=https://image.tmdb.org/t/p/original/abc.jpg
        """
        url = request.args.get('url', '')
        if not _is_tmdb_image_url(url):
            return jsonify({"error": "Missing or non-TMDB image 'url' parameter"}), 400

        try:
            upstream = provider.get_image_response(url)
        except requests.RequestException as e:
            logger.error(f"Image download failed for {url}: {e}")
            metrics.inc("image_proxy_failures")
            return jsonify({"error": "Image download failed"}), 502

        def generate():
            with upstream:
                for chunk in upstream.iter_content(chunk_size=IMAGE_CHUNK_SIZE):
                    yield chunk

        metrics.inc("image_proxy_requests")
        return Response(
            generate(),
            status=upstream.status_code,
            content_type=upstream.headers.get("Content-Type", "application/octet-stream"),
        )

    @app.route('/health', methods=['GET'])
    def health_check():
        """Shallow health check - confirms app is running."""
        return jsonify({
            "status": "healthy",
            "version": PROVIDER_VERSION,
            "id": PLUGIN_ID,
        })

    @app.route('/health/ready', methods=['GET'])
    def readiness_check():
        """Ready only when the provider has a TMDB API key configured."""
        config = provider.current_config()
        checks = {
            "tmdb_api_key": {"status": "ok" if config.has_api_key else "missing"},
            "languages": {"status": "ok", "value": config.effective_languages},
        }
        healthy = config.has_api_key
        return jsonify({
            "status": "healthy" if healthy else "unhealthy",
            "version": PROVIDER_VERSION,
            "checks": checks,
        }), 200 if healthy else 503

    @app.route('/metrics', methods=['GET'])
    def metrics_endpoint():
        """Return application metrics."""
        return jsonify(metrics.get_stats())

    return app


def _is_tmdb_image_url(url: str) -> bool:
    if not url:
        return False
    parsed = urlparse(url)
    origin = urlparse(TMDB_IMAGE_ORIGIN)
    return parsed.scheme == origin.scheme and parsed.netloc == origin.netloc


# =============================================================================
# Main
# =============================================================================

if __name__ == "__main__":
    PORT = int(os.environ.get("PORT", 5200))
    configure_logging(
        level=os.environ.get("LOG_LEVEL", "INFO"),
        structured=os.environ.get("STRUCTURED_LOGGING", "").lower() == "true",
    )
    startup_config = ProviderConfiguration.from_env()
    logger.info(f"Starting {PLUGIN_NAME} v{PROVIDER_VERSION} on port {PORT}")
    logger.info(f"TMDB: {'enabled' if startup_config.has_api_key else 'disabled (no TMDB_API_KEY)'}")
    logger.info(f"Preferred languages: {startup_config.effective_languages}")
    create_app().run(host="0.0.0.0", port=PORT, debug=False)
