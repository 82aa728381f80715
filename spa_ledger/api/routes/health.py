from fastapi import APIRouter

from spa_ledger.core.config import settings

router = APIRouter()


@router.get("/health")
async def health():
    # Liveness only; never touches the spreadsheet
    return {
        "status": "ok",
        "message": f"{settings.APP_NAME} running",
        "spreadsheetConfigured": bool(settings.GOOGLE_SHEETS_ID),
    }
