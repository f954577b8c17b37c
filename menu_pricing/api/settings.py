"""Pricing config and sales channel endpoints."""
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from menu_pricing.database import get_db
from menu_pricing.models.channel import SalesChannel
from menu_pricing.schemas.pricing import (
    ChannelCreate,
    ChannelList,
    ChannelResponse,
    PricingConfig,
    PricingConfigResponse,
)
from menu_pricing.services.snapshot import get_pricing_config, save_pricing_config

router = APIRouter(prefix="/settings", tags=["settings"])
channels_router = APIRouter(prefix="/channels", tags=["channels"])


# ============================================================================
# Pricing config
# ============================================================================


@router.get("/pricing", response_model=PricingConfigResponse)
def read_pricing_config(db: Session = Depends(get_db)):
    """Get the pricing targets, falling back to defaults when none are saved."""
    return get_pricing_config(db)


@router.put("/pricing", response_model=PricingConfigResponse)
def update_pricing_config(
    data: PricingConfig,
    db: Session = Depends(get_db),
):
    """Save the pricing targets."""
    save_pricing_config(db, data)
    db.commit()
    return get_pricing_config(db)


# ============================================================================
# Sales channels
# ============================================================================


@channels_router.get("", response_model=ChannelList)
def list_channels(
    include_inactive: bool = False,
    db: Session = Depends(get_db),
):
    """List sales channels, counter first."""
    query = db.query(SalesChannel)
    if not include_inactive:
        query = query.filter(SalesChannel.is_active == True)
    channels = query.order_by(SalesChannel.is_counter.desc(), SalesChannel.sort_order, SalesChannel.name).all()
    return ChannelList(channels=channels, count=len(channels))


@channels_router.post("", response_model=ChannelResponse, status_code=201)
def create_channel(
    data: ChannelCreate,
    db: Session = Depends(get_db),
):
    """Create a sales channel."""
    existing = db.query(SalesChannel).filter(SalesChannel.name == data.name).first()
    if existing:
        raise HTTPException(status_code=400, detail="Channel with this name already exists")

    if data.is_counter:
        counter = db.query(SalesChannel).filter(SalesChannel.is_counter == True).first()
        if counter:
            raise HTTPException(status_code=400, detail=f"Counter channel already set: {counter.name}")

    channel = SalesChannel(
        name=data.name,
        commission_rate=Decimal(str(data.commission_rate)),
        is_counter=data.is_counter,
        sort_order=data.sort_order,
    )
    db.add(channel)
    db.commit()
    db.refresh(channel)
    return channel
