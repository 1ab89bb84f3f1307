import os
from fastapi import FastAPI
from config import ADMIN_USER, ADMIN_PASS
from db.connection import init_db
from db.users import create_user, count_users
from routes import auth, media, characters, media_characters, library
from logger import logger

app = FastAPI(title="Media Tracker")

# Initialize DB on startup
init_db()

# Include Routers
app.include_router(auth.router)
app.include_router(media_characters.router)
app.include_router(media.router)
app.include_router(characters.router)
app.include_router(library.router)

@app.get("/api/health")
async def health() -> dict:
    return {"status": "ok"}

# --- Create Default Admin User on Startup ---
def create_default_admin() -> None:
    """Create default admin user if no users exist"""
    if count_users() > 0:
        return

    is_default = ADMIN_USER == "admin" and ADMIN_PASS == "admin123"
    logger.info(f"Creating {'default ' if is_default else ''}admin user...")
    # The well-known default password must be changed on first login
    create_user(ADMIN_USER, ADMIN_PASS, "admin@localhost", "admin", must_change_password=is_default)

    if is_default:
        logger.warning(f"Default admin created: username='{ADMIN_USER}'. Password MUST be changed on first login.")
    else:
        logger.info(f"Admin user '{ADMIN_USER}' created from environment variables.")

if not os.environ.get("TESTING"):
    create_default_admin()

def is_port_in_use(port: int) -> bool:
    import socket
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        try:
            s.bind(("0.0.0.0", port))
            return False
        except OSError:
            return True

def find_available_port(start_port: int, max_attempts: int = 100) -> int:
    port = start_port
    while is_port_in_use(port) and port < start_port + max_attempts:
        port += 1
    return port

if __name__ == "__main__":
    import uvicorn
    import argparse

    parser = argparse.ArgumentParser(description="Media Tracker API Server")
    parser.add_argument("--port", "-p", type=int, help="Port to run the server on")
    args = parser.parse_args()

    port = args.port
    if port is None:
        port = find_available_port(8501)
        logger.info(f"No port specified, using first available port: {port}")
    elif is_port_in_use(port):
        logger.warning(f"Port {port} is already in use. Uvicorn may fail to start.")

    uvicorn.run(app, host="0.0.0.0", port=port)
