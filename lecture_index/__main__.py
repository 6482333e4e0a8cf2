from lecture_index.services.crawl.runner import main

raise SystemExit(main())
