# Services layer: seed pipeline, asset migration, pricing, storage
