from fastapi import APIRouter, Depends

from viralboost.middleware.rate_limit_dependencies import rate_limit_ai
from viralboost.models.api.requests import ChatPromoRequest, GenerateBoostRequest, IaBoostRequest
from viralboost.routes.deps import get_ai
from viralboost.services.ai_service import (
    CHAT_PROMO_MAX_TOKENS,
    GENERATE_BOOST_MAX_TOKENS,
    IA_BOOST_MAX_TOKENS,
    AIService,
    coach_prompt,
)

router = APIRouter(prefix="/api", tags=["ai"], dependencies=[Depends(rate_limit_ai)])


@router.post("/generate-boost")
async def generate_boost(body: GenerateBoostRequest, ai: AIService = Depends(get_ai)):
    content = await ai.complete(body.prompt, max_tokens=GENERATE_BOOST_MAX_TOKENS)
    return {"content": content}


@router.post("/ia-boost")
async def ia_boost(body: IaBoostRequest, ai: AIService = Depends(get_ai)):
    strategy = await ai.complete(body.content(), max_tokens=IA_BOOST_MAX_TOKENS)
    return {"strategy": strategy}


@router.post("/chat-promo")
async def chat_promo(body: ChatPromoRequest, ai: AIService = Depends(get_ai)):
    # The conversation already ends with the user's latest turn
    reply = await ai.complete(
        None,
        system_prompt=coach_prompt(body.lang),
        history=[turn.model_dump() for turn in body.messages],
        max_tokens=CHAT_PROMO_MAX_TOKENS,
    )
    return {"reply": reply}
