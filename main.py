"""Main entry point for running the API server"""
import uvicorn
import dotenv

from billsplit.core.config import settings

dotenv.load_dotenv()


def main():
    """Run the FastAPI app"""
    uvicorn.run(
        "billsplit.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )


if __name__ == "__main__":
    main()
