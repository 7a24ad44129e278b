from __future__ import annotations

from collections.abc import Callable

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse

from .chat.models import ChatHistoryResponse, ChatMessageOut, ChatRequest
from .context import AppContext, create_context
from .errors import ChatError, ProviderError, StoreError, UnknownCategoryError
from .geo import Coordinate
from .schemas import (
    RestaurantListResponse,
    RestaurantOut,
    ReviewIn,
    ReviewListResponse,
    ReviewOut,
    UserIn,
    UserOut,
)


def get_context(request: Request) -> AppContext:
    """Return the app's context, building it on first use."""
    state = request.app.state
    if getattr(state, "context", None) is None:
        state.context = state.context_factory()
    return state.context


def _coordinate(lat: float | None, lng: float | None) -> Coordinate | None:
    if lat is None and lng is None:
        return None
    if lat is None or lng is None:
        raise HTTPException(status_code=422, detail="lat and lng must be given together")
    return Coordinate(lat, lng)


def _restaurant_list(restaurants, category: str | None = None) -> RestaurantListResponse:
    return RestaurantListResponse(
        restaurants=[RestaurantOut.model_validate(r) for r in restaurants],
        category=category,
    )


def create_app(context_factory: Callable[[], AppContext] = create_context) -> FastAPI:
    app = FastAPI(title="Tablefinder API", version="1.0.0")
    app.state.context_factory = context_factory
    app.state.context = None

    # ── Error mapping ────────────────────────────────────────────────────

    @app.exception_handler(ProviderError)
    async def provider_error(request: Request, exc: ProviderError) -> JSONResponse:
        return JSONResponse(
            status_code=502,
            content={"detail": "Unable to fetch restaurant results. Please try again later."},
        )

    @app.exception_handler(UnknownCategoryError)
    async def unknown_category(request: Request, exc: UnknownCategoryError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(ChatError)
    async def chat_error(request: Request, exc: ChatError) -> JSONResponse:
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    @app.exception_handler(StoreError)
    async def store_error(request: Request, exc: StoreError) -> JSONResponse:
        return JSONResponse(status_code=500, content={"detail": "Could not save changes"})

    # ── Health ───────────────────────────────────────────────────────────

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    # ── User ─────────────────────────────────────────────────────────────

    @app.get("/user", response_model=UserOut)
    async def read_user(ctx: AppContext = Depends(get_context)) -> UserOut:
        user = ctx.store.get_user()
        if user is None:
            raise HTTPException(status_code=404, detail="No user profile yet")
        return UserOut.model_validate(user)

    @app.put("/user", response_model=UserOut)
    async def save_user(body: UserIn, ctx: AppContext = Depends(get_context)) -> UserOut:
        user = ctx.store.save_user(**body.model_dump())
        return UserOut.model_validate(user)

    @app.post("/user/cuisines/{tag}", response_model=UserOut)
    async def toggle_cuisine(tag: str, ctx: AppContext = Depends(get_context)) -> UserOut:
        user = ctx.store.toggle_preferred_cuisine(tag)
        if user is None:
            raise HTTPException(status_code=404, detail="No user profile yet")
        return UserOut.model_validate(user)

    # ── Restaurants ──────────────────────────────────────────────────────

    @app.get("/restaurants/categories/{category}", response_model=RestaurantListResponse)
    async def resolve_category(
        category: str,
        lat: float | None = Query(default=None, ge=-90.0, le=90.0),
        lng: float | None = Query(default=None, ge=-180.0, le=180.0),
        radius: float | None = Query(default=None, gt=0, le=50000),
        ctx: AppContext = Depends(get_context),
    ) -> RestaurantListResponse:
        restaurants = await ctx.search_cache.resolve(category, _coordinate(lat, lng), radius)
        return _restaurant_list(restaurants, category)

    @app.get("/restaurants/search", response_model=RestaurantListResponse)
    async def search(
        q: str = Query(..., min_length=1, max_length=200),
        lat: float | None = Query(default=None, ge=-90.0, le=90.0),
        lng: float | None = Query(default=None, ge=-180.0, le=180.0),
        radius: float | None = Query(default=None, gt=0, le=50000),
        ctx: AppContext = Depends(get_context),
    ) -> RestaurantListResponse:
        restaurants = await ctx.discovery.search(q, _coordinate(lat, lng), radius)
        return _restaurant_list(restaurants)

    @app.get("/restaurants/favourites", response_model=RestaurantListResponse)
    async def favourites(ctx: AppContext = Depends(get_context)) -> RestaurantListResponse:
        return _restaurant_list(ctx.store.favourite_restaurants())

    @app.get("/restaurants/{place_id}", response_model=RestaurantOut)
    async def read_restaurant(place_id: str, ctx: AppContext = Depends(get_context)) -> RestaurantOut:
        restaurant = ctx.store.get_restaurant(place_id)
        if restaurant is None:
            restaurant = await ctx.discovery.refresh_place(place_id)
        return RestaurantOut.model_validate(restaurant)

    @app.post("/restaurants/{place_id}/favourite", response_model=RestaurantOut)
    async def toggle_favourite(place_id: str, ctx: AppContext = Depends(get_context)) -> RestaurantOut:
        restaurant = ctx.store.toggle_favourite(place_id)
        if restaurant is None:
            raise HTTPException(status_code=404, detail="Restaurant not found")
        return RestaurantOut.model_validate(restaurant)

    # ── Reviews ──────────────────────────────────────────────────────────

    def _require_restaurant(ctx: AppContext, place_id: str):
        restaurant = ctx.store.get_restaurant(place_id)
        if restaurant is None:
            raise HTTPException(status_code=404, detail="Restaurant not found")
        return restaurant

    @app.get("/restaurants/{place_id}/reviews", response_model=ReviewListResponse)
    async def list_reviews(place_id: str, ctx: AppContext = Depends(get_context)) -> ReviewListResponse:
        restaurant = _require_restaurant(ctx, place_id)
        reviews = ctx.store.reviews_for(restaurant)
        return ReviewListResponse(reviews=[ReviewOut.model_validate(r) for r in reviews])

    @app.post("/restaurants/{place_id}/reviews", response_model=ReviewOut, status_code=201)
    async def add_review(
        place_id: str, body: ReviewIn, ctx: AppContext = Depends(get_context),
    ) -> ReviewOut:
        restaurant = _require_restaurant(ctx, place_id)
        user = ctx.store.get_user()
        if user is None:
            raise HTTPException(status_code=409, detail="Create a profile before reviewing")
        review = ctx.store.add_review(restaurant, body.rating, comment=body.comment, author=user)
        return ReviewOut.model_validate(review)

    @app.post("/restaurants/{place_id}/reviews/import", response_model=ReviewListResponse)
    async def import_reviews(place_id: str, ctx: AppContext = Depends(get_context)) -> ReviewListResponse:
        restaurant = _require_restaurant(ctx, place_id)
        await ctx.discovery.import_reviews(restaurant)
        reviews = ctx.store.reviews_for(restaurant)
        return ReviewListResponse(reviews=[ReviewOut.model_validate(r) for r in reviews])

    @app.delete("/reviews/{review_id}", status_code=204)
    async def delete_review(review_id: str, ctx: AppContext = Depends(get_context)) -> Response:
        review = ctx.store.get_review(review_id)
        if review is None:
            raise HTTPException(status_code=404, detail="Review not found")
        if not review.is_local:
            raise HTTPException(status_code=403, detail="Only your own reviews can be deleted")
        ctx.store.delete(review)
        return Response(status_code=204)

    # ── Chat ─────────────────────────────────────────────────────────────

    @app.get("/chat", response_model=ChatHistoryResponse)
    async def chat_history(ctx: AppContext = Depends(get_context)) -> ChatHistoryResponse:
        messages = ctx.assistant.history()
        return ChatHistoryResponse(messages=[ChatMessageOut.model_validate(m) for m in messages])

    @app.post("/chat", response_model=ChatMessageOut)
    async def chat(body: ChatRequest, ctx: AppContext = Depends(get_context)) -> ChatMessageOut:
        reply = await ctx.assistant.ask(body.message)
        return ChatMessageOut.model_validate(reply)

    @app.delete("/chat", status_code=204)
    async def clear_chat(ctx: AppContext = Depends(get_context)) -> Response:
        ctx.assistant.clear()
        return Response(status_code=204)

    return app


app = create_app()
