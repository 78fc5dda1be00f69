from __future__ import annotations
import os
from massagebook import create_app

def main() -> None:
    flask_app = create_app()

    # show what routes are actually mounted
    print("\n=== URL MAP ===")
    for r in sorted(flask_app.url_map.iter_rules(), key=lambda x: x.rule):
        print(f"{','.join(sorted(r.methods - {'HEAD', 'OPTIONS'})):<12} {r}")
    print("===============\n")

    debug_enabled = os.environ.get("FLASK_DEBUG", "0") in {"1", "true", "True"}
    port = int(os.environ.get("PORT", 5003))
    flask_app.logger.info("Starting in %s mode on port %s", flask_app.config["APP_ENV"], port)
    flask_app.run(host="0.0.0.0", port=port, debug=debug_enabled)

if __name__ == "__main__":
    main()
