from fastapi import Header, HTTPException, Request


def verify_bot_token(request: Request, x_bot_token: str = Header(...)):
    token = request.app.state.settings.api_token
    if not token:
        raise HTTPException(
            status_code=500,
            detail="PRINTBOT_API_TOKEN not configured on the bot"
        )

    if x_bot_token != token:
        raise HTTPException(
            status_code=401,
            detail="Invalid bot token"
        )
