"""
Ordered normalizer chain and the post-batch normalization entry point.
"""

# local repo modules
import label_rebuild_kit as lrk
import label_rebuild_kit.boxed_barcode
import label_rebuild_kit.config
import label_rebuild_kit.fallback
import label_rebuild_kit.inventory
import label_rebuild_kit.marker_group
import label_rebuild_kit.normalize
import label_rebuild_kit.qr_form


NormalizationContext = lrk.normalize.NormalizationContext
NormalizationResult = lrk.normalize.NormalizationResult

WARNING_LOW_CONFIDENCE = lrk.config.WARNING_LOW_CONFIDENCE
WARNING_PLACEMENT_APPROXIMATE = lrk.config.WARNING_PLACEMENT_APPROXIMATE

# first match wins
NORMALIZER_CHAIN = [
	lrk.inventory.InventoryCardNormalizer(),
	lrk.qr_form.QrFormNormalizer(),
	lrk.boxed_barcode.BoxedBarcodeFormNormalizer(),
	lrk.marker_group.MarkerGroupNormalizer(),
]
FALLBACK_NORMALIZER = lrk.fallback.GenericFallbackNormalizer()


#============================================
async def run_normalization(
	context: NormalizationContext,
	chain: list | None = None,
	fallback=None,
) -> NormalizationResult:
	"""
	Apply the first matching normalizer, or the generic fallback.

	Args:
		context: Normalization context for the session.
		chain: Ordered normalizers; defaults to NORMALIZER_CHAIN.
		fallback: Normalizer used when nothing matches.

	Returns:
		NormalizationResult of the pass that ran.
	"""
	if chain is None:
		chain = NORMALIZER_CHAIN
	if fallback is None:
		fallback = FALLBACK_NORMALIZER
	if not context.items:
		return NormalizationResult("none", False, True, "empty-items")
	snapshot = await context.refresh()
	for normalizer in chain:
		if not normalizer.matches(context.items, snapshot.bounds):
			continue
		context.log(f"Normalizer matched: {normalizer.name}")
		result = await normalizer.apply(context)
		if not result.placement_resolved:
			context.warn(WARNING_PLACEMENT_APPROXIMATE)
		return result
	context.log("No structural pattern matched, using fallback")
	result = await fallback.apply(context)
	context.warn(WARNING_LOW_CONFIDENCE)
	return result
